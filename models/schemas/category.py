from marshmallow import Schema, fields, validates, validate

from models.schemas.common import not_blank, validate_hex_color


class CategoryCreateSchema(Schema):
    name = fields.String(required=True, validate=not_blank(64))
    slug = fields.String(validate=validate.Regexp(r"^[a-z0-9]+(?:-[a-z0-9]+)*$"))
    description = fields.String(allow_none=True, validate=validate.Length(max=500))
    color = fields.String(load_default="#007acc")
    order = fields.Integer(load_default=0)

    @validates("color")
    def _validate_color(self, value, **kwargs):
        validate_hex_color(value)


class CategoryUpdateSchema(Schema):
    name = fields.String(validate=not_blank(64))
    description = fields.String(allow_none=True, validate=validate.Length(max=500))
    color = fields.String()
    order = fields.Integer()

    @validates("color")
    def _validate_color(self, value, **kwargs):
        validate_hex_color(value)


class CategoryOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    slug = fields.String()
    description = fields.String(allow_none=True)
    color = fields.String()
    order = fields.Integer()
    is_archived = fields.Method("get_is_archived")
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

    def get_is_archived(self, obj):
        return obj.deleted_at is not None
