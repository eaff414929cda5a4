"""
Repositories the service layer talks to instead of the session directly.

UserRepository and RefreshTokenRepository are the stores AuthService depends
on; anything with the same methods (the in-memory stores in tests/fakes.py)
can stand in for them. TopicRepository and PostRepository hold the two keyset
listings.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_

from models.db_storage import DBStorage
from models.post import Post
from models.refresh_token import RefreshToken
from models.tag import Tag, topic_tags
from models.topic import Topic
from models.user import User
from utils.pagination import Cursor, Page, build_page


class UserRepository:
    def __init__(self, storage: DBStorage):
        self._storage = storage

    @property
    def _session(self):
        return self._storage.get_session()

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self._storage.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return self._session.query(User).filter(User.email == email).first()

    def find_by_username(self, username: str) -> Optional[User]:
        return self._session.query(User).filter(User.username == username).first()

    def create(self, user: User) -> str:
        self._storage.new(user)
        self._storage.save()
        return user.id

    def update(self, user: User) -> None:
        self._storage.new(user)
        self._storage.save()


class RefreshTokenRepository:
    """
    Refresh-token records, looked up only by the SHA-256 digest of the token.

    revoke() is a conditional UPDATE so two requests racing on the same token
    cannot both consume it: only the one whose UPDATE touched the row wins.
    """

    def __init__(self, storage: DBStorage):
        self._storage = storage

    @property
    def _session(self):
        return self._storage.get_session()

    def create(self, record: RefreshToken) -> str:
        self._storage.new(record)
        self._storage.save()
        return record.id

    def find_active_by_hash(self, token_hash: bytes, now: datetime) -> Optional[RefreshToken]:
        return (
            self._session.query(RefreshToken)
            .filter(
                RefreshToken.token_hash == token_hash,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .first()
        )

    def revoke(self, token_id: str, now: datetime) -> bool:
        """Revoke one token. Returns False if it was already revoked (or unknown)."""
        affected = (
            self._session.query(RefreshToken)
            .filter(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: now}, synchronize_session="evaluate")
        )
        self._storage.save()
        return affected == 1

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        affected = (
            self._session.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: now}, synchronize_session="evaluate")
        )
        self._storage.save()
        return affected


class TopicRepository:
    """
    Topic listing: pinned first, then most recent activity, newest id first.

    The cursor carries (last_posted_at, id) of the last row served. Pinned rows
    form their own leading segment, so the keyset predicate is applied inside
    the cursor row's segment and every unpinned row follows a pinned cursor.
    """

    def __init__(self, storage: DBStorage):
        self._storage = storage

    @property
    def _session(self):
        return self._storage.get_session()

    def list_page(
        self,
        limit: int,
        cursor: Optional[Cursor] = None,
        category_id: Optional[str] = None,
        tag_slug: Optional[str] = None,
    ) -> Page:
        session = self._session
        query = session.query(Topic).filter(Topic.deleted_at.is_(None))

        if category_id:
            query = query.filter(Topic.category_id == category_id)
        if tag_slug:
            query = (
                query.join(topic_tags, topic_tags.c.topic_id == Topic.id)
                     .join(Tag, Tag.id == topic_tags.c.tag_id)
                     .filter(Tag.slug == tag_slug)
            )

        if cursor is not None:
            last_posted_at, cursor_id = cursor
            after_cursor = or_(
                Topic.last_posted_at < last_posted_at,
                and_(Topic.last_posted_at == last_posted_at, Topic.id < cursor_id),
            )
            cursor_pinned = session.query(Topic.is_pinned).filter(Topic.id == cursor_id).scalar()
            if cursor_pinned:
                query = query.filter(or_(Topic.is_pinned.is_(False), after_cursor))
            else:
                query = query.filter(Topic.is_pinned.is_(False), after_cursor)

        rows = (
            query.order_by(Topic.is_pinned.desc(), Topic.last_posted_at.desc(), Topic.id.desc())
                 .limit(limit + 1)
                 .all()
        )
        return build_page(rows, limit, key=lambda t: (t.last_posted_at, t.id))

    def record_reply(self, topic_id: str, poster_id: str, at: datetime) -> None:
        """Count a new reply in SQL; concurrent replies never overwrite each other's count."""
        self._session.query(Topic).filter(Topic.id == topic_id).update(
            {
                Topic.reply_count: Topic.reply_count + 1,
                Topic.last_posted_at: at,
                Topic.last_poster_id: poster_id,
            },
            synchronize_session="fetch",
        )

    def record_reply_removed(self, topic_id: str) -> None:
        self._session.query(Topic).filter(Topic.id == topic_id, Topic.reply_count > 0).update(
            {Topic.reply_count: Topic.reply_count - 1}, synchronize_session="fetch"
        )


class PostRepository:
    """A topic's posts in creation order, oldest first."""

    def __init__(self, storage: DBStorage):
        self._storage = storage

    @property
    def _session(self):
        return self._storage.get_session()

    def list_page(self, topic_id: str, limit: int, cursor: Optional[Cursor] = None) -> Page:
        query = self._session.query(Post).filter(Post.topic_id == topic_id, Post.deleted_at.is_(None))

        if cursor is not None:
            created_at, cursor_id = cursor
            query = query.filter(
                or_(
                    Post.created_at > created_at,
                    and_(Post.created_at == created_at, Post.id > cursor_id),
                )
            )

        rows = query.order_by(Post.created_at.asc(), Post.id.asc()).limit(limit + 1).all()
        return build_page(rows, limit, key=lambda p: (p.created_at, p.id))
