"""
Keyset (cursor) pagination.

A cursor is the URL-safe base64 form of "<ISO-8601 sort value>|<tie-break id>",
taken from the last row of a page. Lists fetch limit + 1 rows; the extra row
only tells us whether another page exists.
"""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple

from flask import request, abort

DEFAULT_LIMIT = 20
MIN_LIMIT = 1
MAX_LIMIT = 100
SEPARATOR = "|"

Cursor = Tuple[datetime, str]


@dataclass(frozen=True)
class Page:
    items: List[Any] = field(default_factory=list)
    has_next: bool = False
    next_cursor: Optional[str] = None


def encode_cursor(sort_value: datetime, tie_break_id: Any) -> str:
    raw = f"{sort_value.isoformat()}{SEPARATOR}{tie_break_id}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: Optional[str]) -> Optional[Cursor]:
    """Inverse of encode_cursor. Anything undecodable means "no cursor"."""
    if not cursor or not isinstance(cursor, str):
        return None
    try:
        raw = base64.b64decode(cursor.encode("ascii"), altchars=b"-_", validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None

    sort_part, sep, tie_break_id = raw.partition(SEPARATOR)
    if not sep or not tie_break_id:
        return None
    try:
        sort_value = datetime.fromisoformat(sort_part)
    except ValueError:
        return None
    return sort_value, tie_break_id


def clamp_limit(limit: int, minimum: int = MIN_LIMIT, maximum: int = MAX_LIMIT) -> int:
    return max(minimum, min(limit, maximum))


def build_page(rows: Sequence[Any], limit: int, key: Callable[[Any], Cursor]) -> Page:
    """Trim a limit + 1 fetch into a page and derive the next cursor."""
    has_next = len(rows) > limit
    items = list(rows[:limit])
    next_cursor = encode_cursor(*key(items[-1])) if has_next and items else None
    return Page(items=items, has_next=has_next, next_cursor=next_cursor)


def parse_cursor_pagination() -> Tuple[int, Optional[Cursor]]:
    """Read ?limit=&cursor= from the current request."""
    try:
        limit = int(request.args.get("limit", str(DEFAULT_LIMIT)))
    except ValueError:
        abort(400, description="limit must be an integer")
    return clamp_limit(limit), decode_cursor(request.args.get("cursor"))


def page_meta(page: Page, limit: int) -> dict:
    return {"limit": limit, "has_next": page.has_next, "next_cursor": page.next_cursor}
