"""Security utilities: password hashing and the session guard dependencies."""
import logging
import uuid
from typing import Optional

from fastapi import Depends, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from recordbook.core.config import settings
from recordbook.core.errors import Forbidden, NotFound, Unauthenticated
from recordbook.db.sessions import get_db
from recordbook.models.user import User
from recordbook.services import session_service

logger = logging.getLogger("recordbook.security")

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password in constant time."""
    return pwd_context.verify(_truncate_for_bcrypt(plain_password), hashed_password)


def dummy_verify() -> None:
    """Spend the same time as a real verification when there is no user to check."""
    pwd_context.dummy_verify()


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(_truncate_for_bcrypt(password))


def _truncate_for_bcrypt(password: str) -> str:
    """Truncate password to bcrypt's 72-byte limit.

    Bcrypt rejects inputs longer than 72 bytes. We truncate on the UTF-8
    encoded bytes and decode with 'ignore' to avoid splitting multi-byte
    sequences.
    """
    if not isinstance(password, str):
        return password
    b = password.encode("utf-8")[:72]
    return b.decode("utf-8", "ignore")


def get_session_token(request: Request) -> Optional[str]:
    """Read the raw session token from the request cookie, if any."""
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_current_user_id(
    request: Request,
    db: Session = Depends(get_db)
) -> uuid.UUID:
    """
    Dependency that authenticates the request through its session cookie.

    Only the session table is consulted; resource ownership is checked by the
    route that loads the resource.

    Usage:
        @router.post("/items")
        def create_item(user_id: uuid.UUID = Depends(get_current_user_id)):
            ...
    """
    user_id = session_service.resolve_session(db, get_session_token(request))
    if user_id is None:
        raise Unauthenticated()
    return user_id


def require_self(
    user_id: str,
    current_user_id: uuid.UUID = Depends(get_current_user_id)
) -> uuid.UUID:
    """
    Dependency for ``/user/{user_id}`` mutations.

    The addressed id must be exactly the session's user id; anything else,
    including a malformed id, is forbidden.
    """
    if user_id != str(current_user_id):
        logger.info("User %s denied mutation of account %s", current_user_id, user_id)
        raise Forbidden("Forbidden. You can only modify or delete your own account.")
    return current_user_id


def get_current_user(
    current_user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
) -> User:
    """Load the authenticated user's row; a session for a vanished user is a 404."""
    user = db.get(User, current_user_id)
    if user is None:
        raise NotFound("User not found.")
    return user
