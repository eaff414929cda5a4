from enum import Enum

from sqlalchemy import Column, String, Boolean, DateTime, JSON, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import Base, BaseModel


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class UserRole(str, Enum):
    USER = "user"
    MOD = "mod"
    ADMIN = "admin"


class User(BaseModel, Base):
    __tablename__ = "users"

    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    status = Column(
        SAEnum(UserStatus, name="user_status", native_enum=False),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    email_verified = Column(Boolean, nullable=False, default=False)
    roles = Column(JSON, nullable=True, default=lambda: [UserRole.USER.value])
    avatar_url = Column(String(512), nullable=True)
    bio = Column(Text, nullable=True)
    last_seen_at = Column(DateTime, nullable=True)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        passive_deletes=True,
    )

    @property
    def is_suspended(self) -> bool:
        return self.status == UserStatus.SUSPENDED

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")
