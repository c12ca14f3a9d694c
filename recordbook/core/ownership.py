"""Fetch-then-compare ownership checks shared by the resource routes."""
import logging
from typing import Any, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from recordbook.core.errors import Forbidden, NotFound, parse_id

logger = logging.getLogger("recordbook.ownership")

ModelT = TypeVar("ModelT")


def same_id(left: Any, right: Any) -> bool:
    """Compare two identifiers by their string form. A missing side never matches."""
    if left is None or right is None:
        return False
    return str(left) == str(right)


def load_or_404(db: Session, model: Type[ModelT], raw_id: Any, label: str) -> ModelT:
    """Fetch ``model`` by primary key or raise ``NotFound`` (also for malformed ids)."""
    instance = db.get(model, parse_id(raw_id, label))
    if instance is None:
        raise NotFound(f"{label} not found.")
    return instance


def assert_owner(
    instance: Any,
    actor_id: Any,
    field: str = "owner_id",
    label: str = "resource",
    action: str = "modify",
) -> None:
    """Raise ``Forbidden`` unless ``instance.<field>`` is ``actor_id``."""
    if same_id(getattr(instance, field), actor_id):
        return
    role = "author" if field == "author_id" else "owner"
    logger.info(
        "User %s denied %s on %s %s (%s mismatch)",
        actor_id, action, label.lower(), getattr(instance, "id", None), field,
    )
    raise Forbidden(f"Unauthorized. Only the {role} can {action} this {label.lower()}.")


def load_owned(
    db: Session,
    model: Type[ModelT],
    raw_id: Any,
    actor_id: Any,
    *,
    field: str = "owner_id",
    label: Optional[str] = None,
    action: str = "modify",
) -> ModelT:
    """
    Load a resource and require that ``actor_id`` owns it.

    Args:
        db: Database session
        model: Mapped class to load
        raw_id: Identifier as received from the request
        actor_id: Session user id
        field: Attribute holding the owner/author id
        label: Human name used in error messages (defaults to the class name)
        action: Verb used in the 403 message

    Raises:
        NotFound: id is malformed or no row matches (checked first)
        Forbidden: the row belongs to someone else
    """
    label = label or model.__name__
    instance = load_or_404(db, model, raw_id, label)
    assert_owner(instance, actor_id, field=field, label=label, action=action)
    return instance
