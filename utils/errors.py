"""
Typed failures raised by the service layer.

Blueprints let these propagate; api/errors.py maps each class to its HTTP
status and the uniform error envelope, so the mapping stays mechanical.
"""
from __future__ import annotations


class ForumError(Exception):
    """Base class. Unexpected failures surface as a generic 500."""

    status = 500
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidArgument(ForumError, ValueError):
    status = 400
    code = "BAD_REQUEST"
    default_message = "Invalid argument"


class Unauthorized(ForumError):
    status = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class NotFound(ForumError):
    status = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class Conflict(ForumError):
    status = 409
    code = "CONFLICT"
    default_message = "Conflict"
