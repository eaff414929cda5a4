"""
Authentication and session lifecycle.

    Anonymous -> Authenticated(access, refresh) -> Refreshed(new pair)
              -> Revoked / Expired -> Anonymous

Access tokens are stateless JWTs and cannot be revoked; refresh tokens are
opaque, stored only as SHA-256 digests, and single-use: every refresh revokes
the presented token and issues a new one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError

from models.refresh_token import RefreshToken
from models.user import User, UserRole, UserStatus
from utils.errors import Conflict, InvalidArgument, NotFound, Unauthorized
from utils.security import PasswordHasher, TokenService, hash_refresh_token, utcnow

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
ACCOUNT_SUSPENDED = "Account is suspended"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
USER_UNAVAILABLE = "User not found or suspended"
EMAIL_TAKEN = "Email already exists"
USERNAME_TAKEN = "Username already exists"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


def _require(value, message: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(message)


class AuthService:
    def __init__(
        self,
        users,
        refresh_tokens,
        hasher: PasswordHasher,
        tokens: TokenService,
        refresh_token_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher
        self.tokens = tokens
        self.refresh_token_ttl = refresh_token_ttl
        self.clock = clock

    def login(
        self,
        email: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        _require(email, "Email is required")
        _require(password, "Password is required")

        user = self.users.find_by_email(email)
        # Unknown email and wrong password must be indistinguishable
        if user is None or not self.hasher.verify(password, user.password_hash):
            logger.info("Failed login attempt")
            raise Unauthorized(INVALID_CREDENTIALS)

        # Only reported to callers who proved the password
        if user.status == UserStatus.SUSPENDED:
            logger.info("Login refused for suspended user %s", user.id)
            raise Unauthorized(ACCOUNT_SUSPENDED)

        now = self.clock()
        if self.hasher.needs_rehash(user.password_hash):
            user.password_hash = self.hasher.hash(password)
        user.last_seen_at = now
        self.users.update(user)

        pair = self._issue_pair(user, now, user_agent=user_agent, ip_address=ip_address)
        logger.info("User %s logged in", user.id)
        return pair

    def register(self, username: str, email: str, password: str) -> str:
        _require(username, "Username is required")
        _require(email, "Email is required")
        _require(password, "Password is required")

        if self.users.find_by_email(email) is not None:
            raise Conflict(EMAIL_TAKEN)
        if self.users.find_by_username(username) is not None:
            raise Conflict(USERNAME_TAKEN)

        now = self.clock()
        user = User(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            status=UserStatus.ACTIVE,
            email_verified=False,
            roles=[UserRole.USER.value],
            created_at=now,
            updated_at=now,
        )
        try:
            user_id = self.users.create(user)
        except IntegrityError:
            # A concurrent registration won the unique constraint; the store has rolled back
            if self.users.find_by_email(email) is not None:
                raise Conflict(EMAIL_TAKEN) from None
            raise Conflict(USERNAME_TAKEN) from None
        logger.info("User %s registered", user_id)
        return user_id

    def refresh(self, refresh_token: str) -> TokenPair:
        _require(refresh_token, "Refresh token is required")

        now = self.clock()
        record = self.refresh_tokens.find_active_by_hash(hash_refresh_token(refresh_token), now)
        if record is None:
            raise Unauthorized(INVALID_REFRESH_TOKEN)

        user = self.users.find_by_id(record.user_id)
        if user is None or user.status == UserStatus.SUSPENDED:
            raise Unauthorized(USER_UNAVAILABLE)

        # Single use: whoever loses the race on the conditional revoke is rejected
        if not self.refresh_tokens.revoke(record.id, now):
            logger.warning("Refresh token %s was already consumed", record.id)
            raise Unauthorized(INVALID_REFRESH_TOKEN)

        pair = self._issue_pair(user, now, user_agent=record.user_agent, ip_address=record.ip_address)
        logger.info("Tokens refreshed for user %s", user.id)
        return pair

    def logout(self, refresh_token: Optional[str]) -> None:
        """Revoke one refresh token. Unknown, expired or empty tokens are ignored."""
        if not refresh_token:
            return
        now = self.clock()
        record = self.refresh_tokens.find_active_by_hash(hash_refresh_token(refresh_token), now)
        if record is not None and self.refresh_tokens.revoke(record.id, now):
            logger.info("User %s logged out", record.user_id)

    def logout_all(self, user_id: str) -> int:
        revoked = self.refresh_tokens.revoke_all_for_user(user_id, self.clock())
        logger.info("Revoked %d refresh tokens for user %s", revoked, user_id)
        return revoked

    def validate_token(self, access_token: str) -> bool:
        return self.tokens.validate_access_token(access_token)

    def get_user(self, user_id: str) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def _issue_pair(
        self,
        user: User,
        now: datetime,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        access_token = self.tokens.issue_access_token(user.id, user.username, user.roles or [UserRole.USER.value])
        refresh_token = self.tokens.issue_refresh_token()

        self.refresh_tokens.create(
            RefreshToken(
                user_id=user.id,
                token_hash=hash_refresh_token(refresh_token),
                expires_at=now + self.refresh_token_ttl,
                user_agent=user_agent,
                ip_address=ip_address,
                created_at=now,
                updated_at=now,
            )
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.tokens.expires_in,
        )
