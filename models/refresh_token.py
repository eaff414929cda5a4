"""
RefreshToken model: one row per issued refresh token so we can rotate and revoke them.
Fields:
- token_hash (SHA-256 digest of the opaque token; the token itself is never stored)
- user_id (String(36)) - FK to users.id
- expires_at, revoked_at (NULL while active)
- user_agent, ip_address (where the session was opened)
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, LargeBinary
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(LargeBinary(32), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    def is_active(self, now) -> bool:
        return self.revoked_at is None and self.expires_at > now

    def __repr__(self):
        return f"<RefreshToken id={self.id} user={self.user_id}>"
