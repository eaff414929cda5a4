#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixins for the Forum API.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps (naive UTC, set in Python so they keep
  sub-second precision on every backend; keyset pagination orders by them)
- save() that uses DBStorage
- SoftDeleteMixin for models that are hidden rather than removed

Put the mixin FIRST in the model's inheritance list.
  Example:
    class Topic(SoftDeleteMixin, BaseModel, Base): ...
"""

from __future__ import annotations

import uuid

# Importing 'models' gives access to the global 'storage' instance (DBStorage)
# defined in models/__init__.py.
import models

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

from utils.security import utcnow

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at, updated_at,
    plus save()/delete() wired to DBStorage.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        Timestamps passed explicitly (services with an injected clock, tests) win
        over the column defaults.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        # Ensure an id exists if user passed none
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        """Human-friendly representation including id and fields."""
        return f"[{self.__class__.__name__}] ({self.id}) {self.__dict__}"

    def save(self):
        """Touch updated_at and persist the instance using DBStorage."""
        self.updated_at = utcnow()
        models.storage.new(self)
        models.storage.save()


class SoftDeleteMixin:
    """
    Adds a deleted_at timestamp; delete() performs a soft delete.
    Nothing in the forum is hard-deleted.
    """

    deleted_at = Column(DateTime, nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def restore(self):
        """restores an instance; sets delete_at to null and commits
        """
        self.deleted_at = None
        models.storage.new(self)
        models.storage.save()

    def soft_delete(self):
        """Explicit soft delete helper; sets deleted_at and commits."""
        self.deleted_at = utcnow()
        models.storage.new(self)
        models.storage.save()

    def delete(self):
        """Soft delete by setting deleted_at; persists via DBStorage."""
        self.soft_delete()
