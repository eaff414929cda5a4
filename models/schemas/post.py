from marshmallow import Schema, fields

from models.schemas.common import not_blank


class PostCreateSchema(Schema):
    content_md = fields.String(required=True, validate=not_blank(20000))
    reply_to_post_id = fields.String(load_default=None, allow_none=True)


class PostUpdateSchema(Schema):
    content_md = fields.String(required=True, validate=not_blank(20000))


class PostOutSchema(Schema):
    id = fields.String()
    topic_id = fields.String()
    author_id = fields.String()
    content_md = fields.String()
    reply_to_post_id = fields.String(allow_none=True)
    is_edited = fields.Boolean()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
