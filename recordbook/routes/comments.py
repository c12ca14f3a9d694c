"""Comment routes. Reads are public; writes require a session and authorship."""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from recordbook.core.errors import ValidationError, parse_id
from recordbook.core.ownership import load_or_404, load_owned
from recordbook.core.schemas import CamelModel
from recordbook.core.security import get_current_user_id
from recordbook.db.sessions import get_db
from recordbook.models.comment import COMMENT_MAX_LENGTH, Comment
from recordbook.models.record import Record


logger = logging.getLogger("recordbook.routes.comments")

router = APIRouter(prefix="/comment", tags=["Comments"])


# Request/Response schemas
class CreateCommentRequest(CamelModel):
    record_id: Optional[str] = None
    text: Optional[str] = None


class UpdateCommentRequest(CamelModel):
    text: Optional[str] = None


class CommentResponse(CamelModel):
    id: str
    record_id: str
    author_id: Optional[str]
    author_username: Optional[str]
    text: str
    created_at: Optional[str]


def comment_to_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=str(comment.id),
        record_id=str(comment.record_id),
        author_id=str(comment.author_id) if comment.author_id else None,
        author_username=comment.author.username if comment.author else None,
        text=comment.text,
        created_at=comment.created_at.isoformat() if comment.created_at else None,
    )


def _clean_text(text: Optional[str], missing_message: str) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationError(missing_message)
    if len(text) > COMMENT_MAX_LENGTH:
        raise ValidationError(f"Comment text cannot exceed {COMMENT_MAX_LENGTH} characters.")
    return text


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def create_comment(
    body: CreateCommentRequest,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Comment on an existing record. The caller becomes the author."""
    if not body.record_id:
        raise ValidationError("recordId and text are required.")
    text = _clean_text(body.text, "recordId and text are required.")
    record = load_or_404(db, Record, body.record_id, "Record")

    comment = Comment(record_id=record.id, author_id=current_user_id, text=text)
    db.add(comment)
    db.commit()
    db.refresh(comment)

    logger.info("User %s commented on record %s", current_user_id, record.id)
    return comment_to_response(comment)


@router.get("", response_model=List[CommentResponse])
def list_comments(db: Session = Depends(get_db)):
    """List every comment. Public endpoint."""
    comments = db.query(Comment).order_by(Comment.created_at).all()
    return [comment_to_response(comment) for comment in comments]


@router.get("/record/{record_id}", response_model=List[CommentResponse])
def list_comments_for_record(record_id: str, db: Session = Depends(get_db)):
    """List the comments left on one record, oldest first. Public endpoint."""
    comments = db.query(Comment).filter(
        Comment.record_id == parse_id(record_id, "Record")
    ).order_by(Comment.created_at).all()
    return [comment_to_response(comment) for comment in comments]


@router.get("/{comment_id}", response_model=CommentResponse)
def get_comment(comment_id: str, db: Session = Depends(get_db)):
    """Get a single comment. Public endpoint."""
    return comment_to_response(load_or_404(db, Comment, comment_id, "Comment"))


@router.put("/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: str,
    body: UpdateCommentRequest,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Edit a comment's text. Only its author may do so."""
    comment = load_owned(
        db, Comment, comment_id, current_user_id, field="author_id", action="update"
    )
    comment.text = _clean_text(body.text, "Comment text is required for update.")
    db.commit()
    db.refresh(comment)
    return comment_to_response(comment)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: str,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Delete a comment. Only its author may do so."""
    comment = load_owned(
        db, Comment, comment_id, current_user_id, field="author_id", action="delete"
    )
    db.delete(comment)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
