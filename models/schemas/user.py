from marshmallow import Schema, fields, pre_load, validate

from models.user import UserStatus


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class RegisterSchema(Schema):
    username = fields.String(
        required=True,
        validate=[
            validate.Length(min=3, max=50),
            validate.Regexp(r"^[A-Za-z0-9_.-]+$", error="Username may only contain letters, digits, '_', '.' and '-'."),
        ],
    )
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=8, max=100))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = _norm_email(data["email"])
        return data


class LoginSchema(Schema):
    # Matched exactly as stored; only registration normalises the address
    email = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))


class RefreshSchema(Schema):
    refresh_token = fields.String(required=True, validate=validate.Length(min=1))


class LogoutSchema(Schema):
    refresh_token = fields.String(load_default=None, allow_none=True)


class TokenPairOutSchema(Schema):
    access_token = fields.String()
    refresh_token = fields.String()
    token_type = fields.String()
    expires_in = fields.Integer()


class UserProfileUpdateSchema(Schema):
    bio = fields.String(allow_none=True, validate=validate.Length(max=500))
    avatar_url = fields.URL(allow_none=True, validate=validate.Length(max=512))


class RolesSchema(Schema):
    roles = fields.List(fields.String(), required=True, validate=validate.Length(min=1))


class UserPublicSchema(Schema):
    id = fields.String()
    username = fields.String()
    avatar_url = fields.String(allow_none=True)
    bio = fields.String(allow_none=True)
    created_at = fields.DateTime()


class UserOutSchema(UserPublicSchema):
    email = fields.String()
    status = fields.Enum(UserStatus, by_value=True)
    email_verified = fields.Boolean()
    roles = fields.List(fields.String())
    last_seen_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime()
