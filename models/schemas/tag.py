from marshmallow import Schema, fields, validates, validate

from models.schemas.common import not_blank, validate_hex_color


class TagCreateSchema(Schema):
    name = fields.String(required=True, validate=not_blank(32))
    description = fields.String(allow_none=True, validate=validate.Length(max=200))
    color = fields.String(load_default="#6B7280")

    @validates("color")
    def _validate_color(self, value, **kwargs):
        validate_hex_color(value)


class TagOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    slug = fields.String()
    description = fields.String(allow_none=True)
    color = fields.String()
    usage_count = fields.Integer()
    created_at = fields.DateTime()
