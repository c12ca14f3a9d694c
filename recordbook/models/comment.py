"""Comment model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from recordbook.db.base import Base

COMMENT_MAX_LENGTH = 500


class Comment(Base):
    """A note left on a record by any authenticated user."""

    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    record_id = Column(Uuid, ForeignKey("records.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    text = Column(String(COMMENT_MAX_LENGTH), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    author = relationship("User", lazy="joined")
