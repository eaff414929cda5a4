from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort, current_app
from sqlalchemy.orm.attributes import flag_modified

from models import storage
from models.user import User, UserStatus
from models.schemas.user import UserOutSchema, UserPublicSchema, UserProfileUpdateSchema, RolesSchema
from api.auth import get_auth_service
from utils.decorators import jwt_required, roles_required

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()
user_public_schema = UserPublicSchema()
profile_update_schema = UserProfileUpdateSchema()
roles_schema = RolesSchema()


def get_user_or_404(user_id: str) -> User:
    user = storage.get(User, user_id)
    if not user:
        abort(404, description="User not found")
    return user


@bp.get("/users/<user_id>")
def get_user(user_id: str):
    """Public profile of a user."""
    return jsonify({"data": user_public_schema.dump(get_user_or_404(user_id))})


@bp.patch("/me")
@jwt_required()
def update_profile():
    """Update the current user's bio and avatar."""
    data = profile_update_schema.load(request.get_json(silent=True) or {})
    user = g.current_user
    for key in ("bio", "avatar_url"):
        if key in data:
            setattr(user, key, data[key])
    user.save()
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/users/<user_id>/suspend")
@roles_required(["admin"])
def suspend_user(user_id: str):
    """
    Admin-only: suspend an account.
    Outstanding refresh tokens are revoked; access tokens stop working on
    their next use because jwt_required checks the account status.
    """
    user = get_user_or_404(user_id)
    if user.id == g.current_user.id:
        abort(400, description="Admins cannot suspend themselves")
    user.status = UserStatus.SUSPENDED
    user.save()
    get_auth_service().logout_all(user.id)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/users/<user_id>/activate")
@roles_required(["admin"])
def activate_user(user_id: str):
    user = get_user_or_404(user_id)
    user.status = UserStatus.ACTIVE
    user.save()
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/users/<user_id>/roles")
@roles_required(["admin"])
def set_roles(user_id: str):
    """
    Admin-only: replace the roles of a user.
    Body: { "roles": ["admin", "mod", "user"] }
    """
    data = roles_schema.load(request.get_json(silent=True) or {})
    roles = data["roles"]
    user = get_user_or_404(user_id)

    allowed = set(current_app.config.get("ALLOWED_ROLES", ["admin", "mod", "user"]))
    if any(r not in allowed for r in roles):
        abort(422, description=f"Roles must be a subset of {sorted(allowed)}")
    user.roles = sorted(set(roles))
    flag_modified(user, "roles")
    user.save()
    return jsonify({"data": user_out_schema.dump(user)}), 200
