import re

from marshmallow import ValidationError

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(raw: str, max_length: int = 64) -> str:
    """Lowercase ASCII words joined by '-'; empty if nothing usable is left."""
    slug = _NON_SLUG_CHARS.sub("-", (raw or "").strip().lower()).strip("-")
    return slug[:max_length].rstrip("-")


def validate_hex_color(value: str) -> None:
    if value is not None and not HEX_COLOR_RE.match(value):
        raise ValidationError("Color must look like #RRGGBB.")


def not_blank(max_length: int):
    """Validator: non-empty after stripping and at most max_length characters."""
    def _validate(value: str) -> bool:
        return len(value.strip()) > 0 and len(value) <= max_length
    return _validate
