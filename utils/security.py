"""
security helpers:
- Argon2id password hashing via argon2-cffi
- JWT access-token creation/verification via PyJWT
- Opaque refresh tokens and the SHA-256 digest we persist instead of them
"""
from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable

import argon2
import jwt
from argon2.exceptions import InvalidHashError, VerificationError

from utils.errors import InvalidArgument, Unauthorized

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("HS256", "HS384", "HS512")
MIN_SECRET_LENGTH = 32
REFRESH_TOKEN_BYTES = 32


def utcnow() -> datetime:
    """Naive UTC now; every timestamp in the database uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _epoch(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def hash_refresh_token(token: str) -> bytes:
    """SHA-256 digest of a refresh token; the only form that is ever stored."""
    return hashlib.sha256(token.encode("utf-8")).digest()


class PasswordHasher:
    """Argon2id hashing with a random salt per call.

    The encoded digest carries its own salt and parameters, so verify() needs
    nothing but the digest. Instances hold no mutable state.
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._ph = argon2.PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, password: str) -> str:
        if not isinstance(password, str) or not password.strip():
            raise InvalidArgument("Password must not be empty")
        return self._ph.hash(password)

    def verify(self, password: str, digest: str) -> bool:
        if not isinstance(password, str) or not isinstance(digest, str):
            return False
        if not password or not digest:
            return False
        try:
            return self._ph.verify(digest, password)
        except (VerificationError, InvalidHashError, UnicodeError):
            # argon2 ascii-encodes the digest before parsing it
            return False

    def needs_rehash(self, digest: str) -> bool:
        try:
            return self._ph.check_needs_rehash(digest)
        except (InvalidHashError, UnicodeError):
            return True


class TokenService:
    """Issues and validates signed access tokens; mints opaque refresh tokens."""

    def __init__(
        self,
        secret: str,
        issuer: str,
        audience: str,
        access_token_ttl: timedelta = timedelta(minutes=60),
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utcnow,
    ):
        if not isinstance(secret, str) or len(secret) < MIN_SECRET_LENGTH:
            raise ValueError(f"JWT secret must be at least {MIN_SECRET_LENGTH} characters")
        if not issuer or not audience:
            raise ValueError("JWT issuer and audience are required")
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported JWT algorithm: {algorithm}")
        if access_token_ttl <= timedelta(0):
            raise ValueError("Access token lifetime must be positive")

        self._secret = secret
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm
        self.access_token_ttl = access_token_ttl
        self._clock = clock

    @property
    def expires_in(self) -> int:
        return int(self.access_token_ttl.total_seconds())

    def issue_access_token(self, user_id: str, username: str, roles: Iterable[str]) -> str:
        now = self._clock()
        payload = {
            "iss": self.issuer,
            "aud": self.audience,
            "sub": str(user_id),
            "username": username,
            "roles": list(roles),
            "iat": _epoch(now),
            "exp": _epoch(now + self.access_token_ttl),
            "jti": generate_jti(),
            "type": "access",
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def issue_refresh_token(self) -> str:
        return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate an access token.
        Raises Unauthorized on a bad signature, issuer, audience, expiry or type.
        """
        if not isinstance(token, str) or not token:
            raise Unauthorized("Invalid or expired access token")
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                # Time claims are checked below against the injected clock
                options={
                    "require": ["exp", "iat", "sub", "jti"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Access token rejected: %s", exc)
            raise Unauthorized("Invalid or expired access token")

        if decoded.get("type") != "access":
            raise Unauthorized("Invalid or expired access token")

        now = _epoch(self._clock())
        exp, iat = decoded.get("exp"), decoded.get("iat")
        if not isinstance(exp, int) or not isinstance(iat, int):
            raise Unauthorized("Invalid or expired access token")
        # Zero leeway: a token is dead from its exp second on
        if exp <= now or iat > now:
            logger.debug("Access token rejected: outside its validity window")
            raise Unauthorized("Invalid or expired access token")
        return decoded

    def validate_access_token(self, token: str) -> bool:
        try:
            self.decode_access_token(token)
        except Unauthorized:
            return False
        return True
