from marshmallow import Schema, fields, validate

from models.schemas.common import not_blank


class TopicCreateSchema(Schema):
    title = fields.String(required=True, validate=not_blank(200))
    content_md = fields.String(required=True, validate=not_blank(20000))
    category_id = fields.String(required=True)
    tag_slugs = fields.List(fields.String(), load_default=list, validate=validate.Length(max=5))


class TopicUpdateSchema(Schema):
    title = fields.String(validate=not_blank(200))
    category_id = fields.String()
    tag_slugs = fields.List(fields.String(), validate=validate.Length(max=5))


class TopicModerationSchema(Schema):
    is_pinned = fields.Boolean()
    is_locked = fields.Boolean()


class TopicOutSchema(Schema):
    id = fields.String()
    title = fields.String()
    slug = fields.String()
    author_id = fields.String()
    category_id = fields.String()
    is_pinned = fields.Boolean()
    is_locked = fields.Boolean()
    reply_count = fields.Integer()
    view_count = fields.Integer()
    last_posted_at = fields.DateTime()
    last_poster_id = fields.String(allow_none=True)
    tags = fields.Method("get_tags")
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

    def get_tags(self, obj):
        return sorted(t.slug for t in obj.tags)
