"""Record routes. Every route requires a session; records are private to their owner."""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import Field
from sqlalchemy.orm import Session

from recordbook.core.errors import ValidationError
from recordbook.core.ownership import load_or_404, load_owned
from recordbook.core.schemas import CamelModel
from recordbook.core.security import get_current_user_id
from recordbook.db.sessions import get_db
from recordbook.models.category import Category
from recordbook.models.comment import Comment
from recordbook.models.record import Record


logger = logging.getLogger("recordbook.routes.records")

router = APIRouter(prefix="/record", tags=["Records"])


# Request/Response schemas
class RecordRequest(CamelModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    category_id: Optional[str] = None


class RecordResponse(CamelModel):
    id: str
    owner_id: str
    category_id: Optional[str]
    title: str
    description: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]


def record_to_response(record: Record) -> RecordResponse:
    return RecordResponse(
        id=str(record.id),
        owner_id=str(record.owner_id),
        category_id=str(record.category_id) if record.category_id else None,
        title=record.title,
        description=record.description,
        created_at=record.created_at.isoformat() if record.created_at else None,
        updated_at=record.updated_at.isoformat() if record.updated_at else None,
    )


def _resolve_category(db: Session, raw_id: Optional[str]) -> Optional[uuid.UUID]:
    """Turn a client-supplied category id into an existing category's id (or None)."""
    if raw_id is None or not str(raw_id).strip():
        return None
    return load_or_404(db, Category, raw_id, "Category").id


@router.post("", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
def create_record(
    body: RecordRequest,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Create a record owned by the caller, optionally filed under a category."""
    title = (body.title or "").strip()
    if not title:
        raise ValidationError("Record title is required.")

    record = Record(
        owner_id=current_user_id,
        category_id=_resolve_category(db, body.category_id),
        title=title,
        description=body.description,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info("User %s created record %s", current_user_id, record.id)
    return record_to_response(record)


@router.get("", response_model=List[RecordResponse])
def list_records(
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """List the caller's own records."""
    records = db.query(Record).filter(
        Record.owner_id == current_user_id
    ).order_by(Record.created_at).all()
    return [record_to_response(record) for record in records]


@router.get("/{record_id}", response_model=RecordResponse)
def get_record(
    record_id: str,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Get one of the caller's records."""
    record = load_owned(db, Record, record_id, current_user_id, action="view")
    return record_to_response(record)


@router.put("/{record_id}", response_model=RecordResponse)
def update_record(
    record_id: str,
    body: RecordRequest,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Update one of the caller's records.

    Sending ``categoryId: null`` removes the record from its category.
    """
    record = load_owned(db, Record, record_id, current_user_id, action="update")

    provided = body.model_fields_set
    if not provided:
        raise ValidationError("No fields provided for update.")

    if "title" in provided:
        title = (body.title or "").strip()
        if not title:
            raise ValidationError("Record title cannot be empty.")
        record.title = title
    if "description" in provided:
        record.description = body.description
    if "category_id" in provided:
        record.category_id = _resolve_category(db, body.category_id)

    db.commit()
    db.refresh(record)
    return record_to_response(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_record(
    record_id: str,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Delete one of the caller's records together with its comments."""
    record = load_owned(db, Record, record_id, current_user_id, action="delete")

    db.query(Comment).filter(Comment.record_id == record.id).delete(synchronize_session=False)
    db.delete(record)
    db.commit()

    logger.info("User %s deleted record %s", current_user_id, record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
