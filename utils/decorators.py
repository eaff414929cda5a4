from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app
from models import storage
from models.user import User, UserStatus
from utils.errors import Unauthorized


def bearer_token() -> str:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        abort(401, description="Missing or invalid Authorization header")
    return auth.split(" ", 1)[1].strip()


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            try:
                decoded = current_app.extensions["token_service"].decode_access_token(token)
            except Unauthorized as e:
                abort(401, description=e.message)

            user = storage.get(User, decoded.get("sub"))
            if not user:
                abort(401, description="User not found")
            # Access tokens outlive a suspension; the account state is checked per request
            if user.status == UserStatus.SUSPENDED:
                abort(401, description="Account is suspended")
            g.current_user = user
            g.current_user_roles = decoded.get("roles", getattr(user, "roles", None) or [])
            g.current_token_jti = decoded.get("jti")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user has ANY of the required roles.
    Deny (403) only if there is NO overlap between user_roles and required_roles.
    """
    req = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            user_roles = set(getattr(g, "current_user_roles", []))
            if not (user_roles & req):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def has_any_role(*roles: str) -> bool:
    return bool(set(getattr(g, "current_user_roles", [])) & set(roles))
