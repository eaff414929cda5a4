from __future__ import annotations

from flask import Blueprint, request, jsonify, abort, g

from models import storage
from models.post import Post
from models.repositories import PostRepository, TopicRepository
from models.schemas.post import PostCreateSchema, PostUpdateSchema, PostOutSchema
from api.topics import get_topic_or_404
from utils.decorators import jwt_required, has_any_role
from utils.pagination import parse_cursor_pagination, page_meta
from utils.security import utcnow

bp = Blueprint("posts", __name__)

create_schema = PostCreateSchema()
update_schema = PostUpdateSchema()
out_schema = PostOutSchema()
out_list_schema = PostOutSchema(many=True)


def get_post_or_404(session, post_id: str) -> Post:
    post = session.get(Post, post_id)
    if not post or post.deleted_at is not None:
        abort(404, description="Post not found")
    return post


@bp.get("/topics/<topic_id>/posts")
def list_posts(topic_id: str):
    """
    A topic's posts, oldest first.
    Query: limit (1-100), cursor (from meta.next_cursor).
    """
    session = storage.get_session()
    get_topic_or_404(session, topic_id)
    limit, cursor = parse_cursor_pagination()
    page = PostRepository(storage).list_page(topic_id, limit, cursor)
    return jsonify({"data": out_list_schema.dump(page.items), "meta": page_meta(page, limit)})


@bp.get("/posts/<post_id>")
def get_post(post_id: str):
    session = storage.get_session()
    return jsonify({"data": out_schema.dump(get_post_or_404(session, post_id))})


@bp.post("/topics/<topic_id>/posts")
@jwt_required()
def create_post(topic_id: str):
    """Reply in a topic. 400 if the topic is locked."""
    session = storage.get_session()
    topic = get_topic_or_404(session, topic_id)
    if topic.is_locked:
        abort(400, description="Topic is locked")
    data = create_schema.load(request.get_json(silent=True) or {})

    reply_to_id = data.get("reply_to_post_id")
    if reply_to_id:
        parent = session.get(Post, reply_to_id)
        if not parent or parent.topic_id != topic.id or parent.deleted_at is not None:
            abort(422, description="reply_to_post_id must reference a post in this topic")

    user = g.current_user
    now = utcnow()
    post = Post(
        topic_id=topic.id,
        author_id=user.id,
        content_md=data["content_md"],
        reply_to_post_id=reply_to_id,
        is_edited=False,
        created_at=now,
        updated_at=now,
    )
    storage.new(post)
    TopicRepository(storage).record_reply(topic.id, user.id, now)
    storage.save()
    return jsonify({"data": out_schema.dump(post)}), 201


@bp.patch("/posts/<post_id>")
@jwt_required()
def update_post(post_id: str):
    """Edit a post - author only."""
    session = storage.get_session()
    post = get_post_or_404(session, post_id)
    if post.author_id != g.current_user.id:
        abort(403, description="Only the author can edit this post")
    data = update_schema.load(request.get_json(silent=True) or {})
    post.content_md = data["content_md"]
    post.is_edited = True
    post.save()
    return jsonify({"data": out_schema.dump(post)})


@bp.delete("/posts/<post_id>")
@jwt_required()
def delete_post(post_id: str):
    """Soft delete a post - author, mod or admin."""
    session = storage.get_session()
    post = get_post_or_404(session, post_id)
    if post.author_id != g.current_user.id and not has_any_role("admin", "mod"):
        abort(403, description="Only the author or a moderator can delete this post")
    TopicRepository(storage).record_reply_removed(post.topic_id)
    post.delete()
    return ("", 204)
