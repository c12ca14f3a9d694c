"""User routes: local registration, login/logout and profile management."""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import EmailStr
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recordbook.core.errors import InternalError
from recordbook.core.ownership import load_or_404
from recordbook.core.schemas import CamelModel, MessageResponse
from recordbook.core.security import (
    get_current_user,
    get_current_user_id,
    get_session_token,
    require_self,
)
from recordbook.db.sessions import get_db
from recordbook.models.user import User
from recordbook.services import account_service, session_service


logger = logging.getLogger("recordbook.routes.users")

router = APIRouter(prefix="/user", tags=["Users"])


# Request/Response schemas
class RegisterRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    """``username`` may hold either the username or the email address."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UpdateUserRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class AuthResponse(CamelModel):
    message: str
    user_id: str


class UserResponse(CamelModel):
    id: str
    username: Optional[str]
    email: Optional[str]
    has_password: bool
    google_linked: bool
    created_at: Optional[str]


class UpdateUserResponse(CamelModel):
    message: str
    user: UserResponse


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        username=user.username,
        email=user.email,
        has_password=user.has_password,
        google_linked=bool(user.google_id),
        created_at=user.created_at.isoformat() if user.created_at else None,
    )


def start_session(db: Session, request: Request, response: Response, user: User) -> None:
    """Replace any session the client already holds with a fresh one for ``user``."""
    session_service.destroy_session(db, get_session_token(request))
    token = session_service.create_session(db, user.id)
    session_service.set_session_cookie(response, token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Register a new local user.

    - Rejects duplicate usernames and emails (409, naming the field)
    - Logs the new user in: the response carries the session cookie
    """
    user = account_service.register_user(db, body.username, body.email, body.password)
    start_session(db, request, response, user)

    return AuthResponse(
        message="User registered and logged in successfully!",
        user_id=str(user.id),
    )


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Login with username (or email) and password.

    - Validates credentials
    - Sets the session cookie
    """
    user = account_service.authenticate_user(db, body.username or body.email, body.password)
    start_session(db, request, response, user)

    return AuthResponse(message="Logged in successfully!", user_id=str(user.id))


@router.get("/logout", response_model=MessageResponse)
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    """End the current session. Succeeds whether or not a session existed."""
    try:
        session_service.destroy_session(db, get_session_token(request))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error destroying session during logout")
        raise InternalError("Error logging out.") from exc

    session_service.clear_session_cookie(response)
    return MessageResponse(message="Logged out successfully.")


@router.get("/all", response_model=List[UserResponse])
def list_users(
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """List all users. Password hashes are never included."""
    users = db.query(User).order_by(User.created_at).all()
    return [user_to_response(user) for user in users]


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's profile."""
    return user_to_response(current_user)


@router.put("/{user_id}", response_model=UpdateUserResponse)
def update_user(
    user_id: str,
    body: UpdateUserRequest,
    current_user_id: uuid.UUID = Depends(require_self),
    db: Session = Depends(get_db)
):
    """
    Update the caller's own profile.

    Protected endpoint - the path id must be the session's user id.
    """
    user = load_or_404(db, User, user_id, "User")
    user = account_service.update_user_profile(
        db, user, username=body.username, email=body.email, password=body.password
    )
    return UpdateUserResponse(
        message="User profile successfully updated.",
        user=user_to_response(user),
    )


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    current_user_id: uuid.UUID = Depends(require_self),
    db: Session = Depends(get_db)
):
    """
    Delete the caller's own account.

    Cascades to the user's records and ends every session of the user.
    """
    account_service.delete_user_account(db, current_user_id)

    try:
        session_service.destroy_user_sessions(db, current_user_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error destroying sessions after deleting user %s", current_user_id)

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    session_service.clear_session_cookie(response)
    return response
