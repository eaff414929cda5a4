from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, SoftDeleteMixin
from models.tag import topic_tags
from utils.security import utcnow


class Topic(SoftDeleteMixin, BaseModel, Base):
    __tablename__ = "topics"

    title = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False)
    is_pinned = Column(Boolean, nullable=False, default=False)
    is_locked = Column(Boolean, nullable=False, default=False)
    reply_count = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    # Keyset sort value of the topic list; bumped on every new post
    last_posted_at = Column(DateTime, nullable=False, default=utcnow)
    last_poster_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    author = relationship("User", foreign_keys=[author_id])
    last_poster = relationship("User", foreign_keys=[last_poster_id])
    category = relationship("Category", back_populates="topics")
    tags = relationship("Tag", secondary=topic_tags, back_populates="topics")
    posts = relationship("Post", back_populates="topic")

    __table_args__ = (
        CheckConstraint("reply_count >= 0", name="ck_topics_reply_count_nonnegative"),
        CheckConstraint("view_count >= 0", name="ck_topics_view_count_nonnegative"),
        Index("ix_topics_listing", "is_pinned", "last_posted_at", "id"),
        Index("ix_topics_category", "category_id"),
    )
