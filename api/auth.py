"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all
- GET  /auth/me

Login returns a short-lived JWT access token plus an opaque refresh token.
Refresh tokens are stored hashed and rotated on every use (see AuthService).
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from models import storage
from models.repositories import UserRepository, RefreshTokenRepository
from models.schemas.user import (
    RegisterSchema,
    LoginSchema,
    RefreshSchema,
    LogoutSchema,
    TokenPairOutSchema,
    UserOutSchema,
)
from services.auth_service import AuthService
from utils.decorators import jwt_required

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
token_pair_schema = TokenPairOutSchema()
user_out_schema = UserOutSchema()


def get_auth_service() -> AuthService:
    return AuthService(
        users=UserRepository(storage),
        refresh_tokens=RefreshTokenRepository(storage),
        hasher=current_app.extensions["password_hasher"],
        tokens=current_app.extensions["token_service"],
        refresh_token_ttl=current_app.config["REFRESH_TOKEN_EXPIRES"],
    )


@bp.post("/register")
def register():
    """Register a new user. 201 with the new id, 409 on a taken email/username."""
    data = register_schema.load(request.get_json(silent=True) or {})
    user_id = get_auth_service().register(data["username"], data["email"], data["password"])
    return jsonify({"data": {"user_id": user_id}}), 201


@bp.post("/login")
def login():
    """Exchange credentials for an access/refresh token pair."""
    data = login_schema.load(request.get_json(silent=True) or {})
    pair = get_auth_service().login(
        data["email"],
        data["password"],
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify(token_pair_schema.dump(pair)), 200


@bp.post("/refresh")
def refresh():
    """Rotate a refresh token: the presented token is consumed, a new pair is returned."""
    data = refresh_schema.load(request.get_json(silent=True) or {})
    pair = get_auth_service().refresh(data["refresh_token"])
    return jsonify(token_pair_schema.dump(pair)), 200


@bp.post("/logout")
def logout():
    """Revoke the given refresh token. Always 204."""
    data = logout_schema.load(request.get_json(silent=True) or {})
    get_auth_service().logout(data.get("refresh_token"))
    return ("", 204)


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """Revoke every refresh token of the current user (all devices)."""
    get_auth_service().logout_all(g.current_user.id)
    return ("", 204)


@bp.get("/me")
@jwt_required()
def me():
    user = get_auth_service().get_user(g.current_user.id)
    return jsonify({"data": user_out_schema.dump(user)}), 200
