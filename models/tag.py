from sqlalchemy import Column, String, Integer, Text, Table, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base

# Association table with CASCADE so join rows clean up when either side goes away
topic_tags = Table(
    "topic_tags",
    Base.metadata,
    Column("topic_id", String(36), ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Tag(BaseModel, Base):
    __tablename__ = "tags"

    name = Column(String(32), nullable=False, unique=True)
    slug = Column(String(32), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=False, default="#6B7280")
    usage_count = Column(Integer, nullable=False, default=0)

    topics = relationship("Topic", secondary=topic_tags, back_populates="tags")

    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_tags_usage_nonnegative"),
    )
