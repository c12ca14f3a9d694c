"""Category model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, UniqueConstraint, Uuid
from recordbook.db.base import Base


class Category(Base):
    """Owner-scoped grouping for records. Names are unique per owner."""

    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_categories_owner_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    color = Column(String(20))
    created_at = Column(DateTime, default=datetime.utcnow)
