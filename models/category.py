from sqlalchemy.orm import relationship
from sqlalchemy import Column, String, Integer, Text, Index

from models.base_model import BaseModel, Base, SoftDeleteMixin


class Category(SoftDeleteMixin, BaseModel, Base):
    """Archived categories are soft-deleted: hidden from lists, topics kept."""
    __tablename__ = "categories"

    # Unique among active categories only; enforced in api/categories.py
    name = Column(String(64), nullable=False)
    slug = Column(String(64), nullable=False, index=True)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=False, default="#007acc")
    order = Column(Integer, nullable=False, default=0)

    topics = relationship("Topic", back_populates="category")

    __table_args__ = (
        Index("ix_categories_name", "name"),
    )
