from __future__ import annotations

from flask import Blueprint, request, jsonify, abort
from sqlalchemy import func, or_

from models import storage
from models.tag import Tag
from models.schemas.tag import TagCreateSchema, TagOutSchema
from models.schemas.common import slugify
from utils.decorators import roles_required

bp = Blueprint("tags", __name__)

create_schema = TagCreateSchema()
out_schema = TagOutSchema()
out_list_schema = TagOutSchema(many=True)


@bp.get("/tags")
def list_tags():
    """Most used tags first. ?q= filters by name."""
    session = storage.get_session()
    query = session.query(Tag)
    q = request.args.get("q")
    if q:
        # % and _ in the query are matched literally
        query = query.filter(func.lower(Tag.name).contains(q.strip().lower(), autoescape=True))
    rows = query.order_by(Tag.usage_count.desc(), Tag.name.asc()).all()
    return jsonify({"data": out_list_schema.dump(rows), "meta": {"total": len(rows)}})


@bp.get("/tags/<slug>")
def get_tag(slug: str):
    session = storage.get_session()
    tag = session.query(Tag).filter(Tag.slug == slug).first()
    if not tag:
        abort(404, description="Tag not found")
    return jsonify({"data": out_schema.dump(tag)})


@bp.post("/tags")
@roles_required(["admin", "mod"])
def create_tag():
    """Create a tag - admin/mod. The slug is derived from the name."""
    session = storage.get_session()
    data = create_schema.load(request.get_json(silent=True) or {})
    slug = slugify(data["name"], max_length=32)
    if not slug:
        abort(422, description="Tag name must contain letters or digits.")
    clash = session.query(Tag).filter(
        or_(func.lower(Tag.name) == data["name"].lower(), Tag.slug == slug)
    ).first()
    if clash:
        abort(409, description="Tag already exists.")
    tag = Tag(name=data["name"], slug=slug, description=data.get("description"), color=data["color"])
    storage.new(tag)
    storage.save()
    return jsonify({"data": out_schema.dump(tag)}), 201
