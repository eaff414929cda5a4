from __future__ import annotations

from typing import List

from flask import Blueprint, request, jsonify, abort, g

from models import storage
from models.category import Category
from models.post import Post
from models.repositories import TopicRepository
from models.tag import Tag
from models.topic import Topic
from models.schemas.common import slugify
from models.schemas.topic import (
    TopicCreateSchema,
    TopicUpdateSchema,
    TopicModerationSchema,
    TopicOutSchema,
)
from utils.decorators import jwt_required, roles_required, has_any_role
from utils.pagination import parse_cursor_pagination, page_meta
from utils.security import utcnow

bp = Blueprint("topics", __name__)

create_schema = TopicCreateSchema()
update_schema = TopicUpdateSchema()
moderation_schema = TopicModerationSchema()
out_schema = TopicOutSchema()
out_list_schema = TopicOutSchema(many=True)


def get_topic_or_404(session, topic_id: str) -> Topic:
    topic = session.get(Topic, topic_id)
    if not topic or topic.deleted_at is not None:
        abort(404, description="Topic not found")
    return topic


def get_active_category_or_404(session, category_id: str) -> Category:
    category = session.get(Category, category_id)
    if not category or category.deleted_at is not None:
        abort(404, description="Category not found")
    return category


def resolve_tags(session, slugs: List[str]) -> List[Tag]:
    wanted = sorted(set(s.strip().lower() for s in slugs if s.strip()))
    if not wanted:
        return []
    tags = session.query(Tag).filter(Tag.slug.in_(wanted)).all()
    missing = set(wanted) - {t.slug for t in tags}
    if missing:
        abort(422, description=f"Unknown tags: {', '.join(sorted(missing))}")
    return tags


def can_manage(topic: Topic) -> bool:
    return topic.author_id == g.current_user.id or has_any_role("admin", "mod")


@bp.get("/topics")
def list_topics():
    """
    Topics, pinned first then by latest activity.
    Query: limit (1-100), cursor (from meta.next_cursor), category_id, tag (slug).
    """
    limit, cursor = parse_cursor_pagination()
    page = TopicRepository(storage).list_page(
        limit,
        cursor,
        category_id=request.args.get("category_id"),
        tag_slug=request.args.get("tag"),
    )
    return jsonify({"data": out_list_schema.dump(page.items), "meta": page_meta(page, limit)})


@bp.get("/topics/<topic_id>")
def get_topic(topic_id: str):
    """Topic detail; every read counts as a view."""
    session = storage.get_session()
    topic = get_topic_or_404(session, topic_id)
    session.query(Topic).filter(Topic.id == topic.id).update(
        {Topic.view_count: Topic.view_count + 1}, synchronize_session="evaluate"
    )
    storage.save()
    return jsonify({"data": out_schema.dump(topic)})


@bp.post("/topics")
@jwt_required()
def create_topic():
    """Open a topic together with its first post."""
    session = storage.get_session()
    data = create_schema.load(request.get_json(silent=True) or {})
    category = get_active_category_or_404(session, data["category_id"])
    tags = resolve_tags(session, data["tag_slugs"])

    user = g.current_user
    now = utcnow()
    topic = Topic(
        title=data["title"].strip(),
        slug=slugify(data["title"], max_length=200) or "topic",
        author_id=user.id,
        category_id=category.id,
        is_pinned=False,
        is_locked=False,
        reply_count=0,
        view_count=0,
        last_posted_at=now,
        last_poster_id=user.id,
        created_at=now,
        updated_at=now,
    )
    topic.tags = tags
    for tag in tags:
        tag.usage_count += 1
    first_post = Post(topic=topic, author_id=user.id, content_md=data["content_md"], created_at=now, updated_at=now)

    storage.new(topic)
    storage.new(first_post)
    storage.save()
    return jsonify({"data": out_schema.dump(topic)}), 201


@bp.patch("/topics/<topic_id>")
@jwt_required()
def update_topic(topic_id: str):
    """Edit title, category or tags - author, mod or admin."""
    session = storage.get_session()
    topic = get_topic_or_404(session, topic_id)
    if not can_manage(topic):
        abort(403, description="Only the author or a moderator can edit this topic")
    data = update_schema.load(request.get_json(silent=True) or {})

    if "title" in data:
        topic.title = data["title"].strip()
        topic.slug = slugify(data["title"], max_length=200) or "topic"
    if "category_id" in data:
        topic.category_id = get_active_category_or_404(session, data["category_id"]).id
    if "tag_slugs" in data:
        new_tags = resolve_tags(session, data["tag_slugs"])
        old_ids = {t.id for t in topic.tags}
        new_ids = {t.id for t in new_tags}
        for tag in topic.tags:
            if tag.id not in new_ids:
                tag.usage_count = max(0, tag.usage_count - 1)
        for tag in new_tags:
            if tag.id not in old_ids:
                tag.usage_count += 1
        topic.tags = new_tags
    topic.save()
    return jsonify({"data": out_schema.dump(topic)})


@bp.patch("/topics/<topic_id>/moderation")
@roles_required(["admin", "mod"])
def moderate_topic(topic_id: str):
    """Pin/unpin and lock/unlock a topic - mod or admin."""
    session = storage.get_session()
    topic = get_topic_or_404(session, topic_id)
    data = moderation_schema.load(request.get_json(silent=True) or {})
    for key in ("is_pinned", "is_locked"):
        if key in data:
            setattr(topic, key, data[key])
    topic.save()
    return jsonify({"data": out_schema.dump(topic)})


@bp.delete("/topics/<topic_id>")
@jwt_required()
def delete_topic(topic_id: str):
    """Soft delete a topic - author, mod or admin."""
    session = storage.get_session()
    topic = get_topic_or_404(session, topic_id)
    if not can_manage(topic):
        abort(403, description="Only the author or a moderator can delete this topic")
    for tag in topic.tags:
        tag.usage_count = max(0, tag.usage_count - 1)
    topic.delete()
    return ("", 204)
