"""User model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Uuid
from recordbook.db.base import Base


class User(Base):
    """Account record.

    A local account carries ``password_hash``; an account created through
    Google sign-in carries ``google_id`` and may have no password at all.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(100), unique=True, nullable=True, index=True)
    email = Column(String(150), unique=True, nullable=True, index=True)
    password_hash = Column(String, nullable=True)
    google_id = Column(String(255), unique=True, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)
