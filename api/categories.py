from __future__ import annotations

from flask import Blueprint, request, jsonify, abort
from sqlalchemy import func

from models import storage
from models.category import Category
from models.schemas.category import (
    CategoryCreateSchema,
    CategoryUpdateSchema,
    CategoryOutSchema,
)
from models.schemas.common import slugify
from utils.decorators import roles_required

bp = Blueprint("categories", __name__)

create_schema = CategoryCreateSchema()
update_schema = CategoryUpdateSchema()
out_schema = CategoryOutSchema()
out_list_schema = CategoryOutSchema(many=True)


def exists_name_case_insensitive(session, name: str, exclude_id: str | None = None) -> bool:
    q = session.query(Category).filter(func.lower(Category.name) == name.lower())
    if exclude_id:
        q = q.filter(Category.id != exclude_id)
    # Archived categories do not reserve their name
    q = q.filter(Category.deleted_at.is_(None))
    return session.query(q.exists()).scalar()


def active_slug_taken(session, slug: str, exclude_id: str | None = None) -> bool:
    q = session.query(Category).filter(Category.slug == slug, Category.deleted_at.is_(None))
    if exclude_id:
        q = q.filter(Category.id != exclude_id)
    return session.query(q.exists()).scalar()


def get_category_or_404(session, category_id: str) -> Category:
    c = session.get(Category, category_id)
    if not c:
        abort(404, description="Category not found")
    return c


@bp.post("/categories")
@roles_required(["admin"])
def create_category():
    """Create a category - admin. 409 if the name or slug is taken."""
    session = storage.get_session()
    data = create_schema.load(request.get_json(silent=True) or {})
    if exists_name_case_insensitive(session, data["name"]):
        abort(409, description="Category name already exists.")
    slug = data.get("slug") or slugify(data["name"])
    if not slug:
        abort(422, description="Could not derive a slug from the name; provide one.")
    if active_slug_taken(session, slug):
        abort(409, description="Category slug already exists.")
    c = Category(
        name=data["name"],
        slug=slug,
        description=data.get("description"),
        color=data["color"],
        order=data["order"],
    )
    storage.new(c)
    storage.save()
    return jsonify({"data": out_schema.dump(c)}), 201


@bp.get("/categories")
def list_categories():
    """List categories by display order, then name. ?include_archived=true shows archived ones."""
    session = storage.get_session()
    include_archived = request.args.get("include_archived", "false").lower() in ("1", "true", "yes")

    query = session.query(Category)
    if not include_archived:
        query = query.filter(Category.deleted_at.is_(None))
    rows = query.order_by(Category.order.asc(), Category.name.asc()).all()
    return jsonify({"data": out_list_schema.dump(rows), "meta": {"total": len(rows)}})


@bp.get("/categories/<category_id>")
def get_category(category_id: str):
    session = storage.get_session()
    return jsonify({"data": out_schema.dump(get_category_or_404(session, category_id))})


@bp.get("/categories/slug/<slug>")
def get_category_by_slug(slug: str):
    session = storage.get_session()
    # An archived category may share its slug with the active one that replaced it
    c = (
        session.query(Category)
        .filter(Category.slug == slug)
        .order_by(Category.deleted_at.is_(None).desc(), Category.created_at.desc())
        .first()
    )
    if not c:
        abort(404, description="Category not found")
    return jsonify({"data": out_schema.dump(c)})


@bp.patch("/categories/<category_id>")
@roles_required(["admin"])
def update_category(category_id: str):
    """Update a category (partial) - admin. The slug never changes."""
    session = storage.get_session()
    c = get_category_or_404(session, category_id)
    data = update_schema.load(request.get_json(silent=True) or {})
    if "name" in data:
        if exists_name_case_insensitive(session, data["name"], exclude_id=c.id):
            abort(409, description="Category name already exists.")
        c.name = data["name"]
    for key in ("description", "color", "order"):
        if key in data:
            setattr(c, key, data[key])
    c.save()
    return jsonify({"data": out_schema.dump(c)})


@bp.delete("/categories/<category_id>")
@roles_required(["admin"])
def archive_category(category_id: str):
    """Archive a category (soft delete) - admin. Its topics stay readable."""
    session = storage.get_session()
    c = get_category_or_404(session, category_id)
    c.delete()
    return ("", 204)


@bp.post("/categories/<category_id>/restore")
@roles_required(["admin"])
def restore_category(category_id: str):
    """Restore an archived category - admin."""
    session = storage.get_session()
    c = get_category_or_404(session, category_id)
    # Enforce active uniqueness on restore
    if c.deleted_at is not None:
        if exists_name_case_insensitive(session, c.name, exclude_id=c.id):
            abort(409, description="Another active category with the same name exists.")
        if active_slug_taken(session, c.slug, exclude_id=c.id):
            abort(409, description="Another active category with the same slug exists.")
    c.restore()
    return jsonify({"data": out_schema.dump(c)})
