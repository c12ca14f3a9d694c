"""Category routes."""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recordbook.core.errors import Conflict, ValidationError
from recordbook.core.ownership import load_or_404, load_owned
from recordbook.core.schemas import CamelModel
from recordbook.core.security import get_current_user_id
from recordbook.db.sessions import get_db
from recordbook.models.category import Category
from recordbook.models.record import Record


logger = logging.getLogger("recordbook.routes.categories")

router = APIRouter(prefix="/category", tags=["Categories"])


# Request/Response schemas
class CategoryRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, max_length=20)


class CategoryResponse(CamelModel):
    id: str
    name: str
    owner_id: Optional[str]
    description: Optional[str]
    color: Optional[str]
    created_at: Optional[str]


def category_to_response(category: Category) -> CategoryResponse:
    return CategoryResponse(
        id=str(category.id),
        name=category.name,
        owner_id=str(category.owner_id) if category.owner_id else None,
        description=category.description,
        color=category.color,
        created_at=category.created_at.isoformat() if category.created_at else None,
    )


def _name_taken(db: Session, owner_id: uuid.UUID, name: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
    query = db.query(Category.id).filter(Category.owner_id == owner_id, Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def _commit_category(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Category already exists.")


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    body: CategoryRequest,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Create a category owned by the caller.

    Names are unique per owner; a repeated name is a 409.
    """
    name = (body.name or "").strip()
    if not name:
        raise ValidationError("Category name is required.")

    if _name_taken(db, current_user_id, name):
        raise Conflict("Category already exists.")

    category = Category(
        owner_id=current_user_id,
        name=name,
        description=body.description,
        color=body.color,
    )
    db.add(category)
    _commit_category(db)
    db.refresh(category)

    logger.info("User %s created category %s", current_user_id, category.id)
    return category_to_response(category)


@router.get("", response_model=List[CategoryResponse])
def list_categories(db: Session = Depends(get_db)):
    """List every category. Public endpoint."""
    categories = db.query(Category).order_by(Category.created_at).all()
    return [category_to_response(category) for category in categories]


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(category_id: str, db: Session = Depends(get_db)):
    """Get a single category. Public endpoint."""
    return category_to_response(load_or_404(db, Category, category_id, "Category"))


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: str,
    body: CategoryRequest,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Update a category. Only its owner may do so."""
    category = load_owned(db, Category, category_id, current_user_id, action="update")

    provided = body.model_fields_set
    if not provided:
        raise ValidationError("No fields provided for update.")

    if "name" in provided:
        name = (body.name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty.")
        if _name_taken(db, current_user_id, name, exclude_id=category.id):
            raise Conflict("Category already exists.")
        category.name = name
    if "description" in provided:
        category.description = body.description
    if "color" in provided:
        category.color = body.color

    _commit_category(db)
    db.refresh(category)
    return category_to_response(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: str,
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Delete a category. Only its owner may do so.

    Records filed under it are kept and lose their category.
    """
    category = load_owned(db, Category, category_id, current_user_id, action="delete")

    detached = db.query(Record).filter(Record.category_id == category.id).update(
        {Record.category_id: None}, synchronize_session=False
    )
    db.delete(category)
    db.commit()

    logger.info("Deleted category %s, detached %d record(s)", category_id, detached)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
