from sqlalchemy import Column, String, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, SoftDeleteMixin


class Post(SoftDeleteMixin, BaseModel, Base):
    __tablename__ = "posts"

    topic_id = Column(String(36), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    content_md = Column(Text, nullable=False)
    reply_to_post_id = Column(String(36), ForeignKey("posts.id", ondelete="SET NULL"), nullable=True)
    is_edited = Column(Boolean, nullable=False, default=False)

    topic = relationship("Topic", back_populates="posts")
    author = relationship("User")

    __table_args__ = (
        # Keyset order of a topic's thread
        Index("ix_posts_thread", "topic_id", "created_at", "id"),
    )
