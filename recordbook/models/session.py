"""Server-side login session model."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from recordbook.db.base import Base


class AuthSession(Base):
    """Maps an opaque cookie token to the user it was issued for."""

    __tablename__ = "auth_sessions"

    token = Column(String(64), primary_key=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.utcnow()) >= self.expires_at
