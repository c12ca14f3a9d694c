"""Session manager: opaque cookie tokens backed by the ``auth_sessions`` table."""
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Response
from sqlalchemy.orm import Session

from recordbook.core.config import settings
from recordbook.models.session import AuthSession

logger = logging.getLogger("recordbook.sessions")

TOKEN_BYTES = 32


def create_session(db: Session, user_id: uuid.UUID) -> str:
    """Issue a new session for ``user_id`` and return its token."""
    now = datetime.utcnow()
    token = secrets.token_urlsafe(TOKEN_BYTES)
    db.add(AuthSession(
        token=token,
        user_id=user_id,
        created_at=now,
        expires_at=now + timedelta(minutes=settings.SESSION_TTL_MINUTES),
    ))
    db.commit()
    logger.info("Session created for user %s", user_id)
    return token


def resolve_session(db: Session, token: Optional[str]) -> Optional[uuid.UUID]:
    """Return the user id behind ``token``, or None if it is unknown or expired."""
    if not token:
        return None
    session = db.get(AuthSession, token)
    if session is None:
        return None
    if session.is_expired():
        db.delete(session)
        db.commit()
        logger.info("Expired session removed for user %s", session.user_id)
        return None
    return session.user_id


def destroy_session(db: Session, token: Optional[str]) -> bool:
    """Invalidate ``token``. Unknown tokens are fine; returns whether one existed."""
    if not token:
        return False
    deleted = db.query(AuthSession).filter(AuthSession.token == token).delete(
        synchronize_session=False
    )
    db.commit()
    if deleted:
        logger.info("Session destroyed")
    return bool(deleted)


def destroy_user_sessions(db: Session, user_id: uuid.UUID) -> int:
    """Invalidate every session issued for ``user_id``."""
    deleted = db.query(AuthSession).filter(AuthSession.user_id == user_id).delete(
        synchronize_session=False
    )
    db.commit()
    logger.info("Destroyed %d session(s) for user %s", deleted, user_id)
    return deleted


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_MINUTES * 60,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.session_samesite,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=settings.session_samesite,
    )
