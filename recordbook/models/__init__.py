"""Database models."""
from recordbook.models.user import User
from recordbook.models.category import Category
from recordbook.models.record import Record
from recordbook.models.comment import Comment
from recordbook.models.session import AuthSession

__all__ = [
    "User",
    "Category",
    "Record",
    "Comment",
    "AuthSession",
]
