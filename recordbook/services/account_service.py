"""Credential store operations: registration, login checks and account linking."""
import logging
import re
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recordbook.core.errors import Conflict, InternalError, Unauthenticated, ValidationError
from recordbook.core.ownership import load_or_404
from recordbook.core.security import dummy_verify, get_password_hash, verify_password
from recordbook.models.category import Category
from recordbook.models.comment import Comment
from recordbook.models.record import Record
from recordbook.models.user import User

logger = logging.getLogger("recordbook.accounts")

INVALID_CREDENTIALS = "Invalid credentials."
EXTERNAL_ACCOUNT_ONLY = (
    "This account was created with Google sign-in and has no password. "
    "Log in through /auth/google."
)


@dataclass
class ExternalProfile:
    """Identity asserted by an external provider after a successful sign-in."""

    provider_id: Optional[str]
    email: Optional[str] = None
    email_verified: bool = False
    display_name: Optional[str] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _normalize_email(email: Optional[str]) -> Optional[str]:
    email = _clean(email)
    return email.lower() if email else None


def _clean_username(username: Optional[str]) -> Optional[str]:
    """Usernames never contain '@', so a login identifier names one column only."""
    username = _clean(username)
    if username and "@" in username:
        raise ValidationError("Username cannot contain '@'.")
    return username


def find_collisions(
    db: Session,
    username: Optional[str],
    email: Optional[str],
    exclude_id: Optional[uuid.UUID] = None,
) -> List[str]:
    """Return which of ``username``/``email`` already belong to another user."""
    collisions = []
    for field, column, value in (("username", User.username, username), ("email", User.email, email)):
        if not value:
            continue
        query = db.query(User.id).filter(column == value)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first() is not None:
            collisions.append(field)
    return collisions


def _conflict_message(collisions: List[str]) -> str:
    if collisions == ["username"]:
        return "Username is already taken."
    if collisions == ["email"]:
        return "Email is already registered."
    return "Username and email are already registered."


def _commit_user(db: Session, user: User) -> User:
    """Commit a new/changed user, reporting a concurrent uniqueness race as 409."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Uniqueness race while saving user %s", user.username)
        raise Conflict("Username or email is already registered.")
    db.refresh(user)
    return user


def _hash(password: str) -> str:
    try:
        return get_password_hash(password)
    except (ValueError, TypeError) as exc:
        logger.exception("Password hashing failed")
        raise InternalError("Error hashing password.") from exc


def register_user(
    db: Session,
    username: Optional[str],
    email: Optional[str],
    password: Optional[str],
) -> User:
    """
    Create a local account.

    Raises:
        ValidationError: a required field is missing or the username contains '@'
        Conflict: username or email belongs to an existing user
    """
    username = _clean_username(username)
    email = _normalize_email(email)
    if not username or not email or not password:
        raise ValidationError("Username, email and password are required.")

    collisions = find_collisions(db, username, email)
    if collisions:
        raise Conflict(_conflict_message(collisions))

    user = User(username=username, email=email, password_hash=_hash(password))
    db.add(user)
    user = _commit_user(db, user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate_user(db: Session, identifier: Optional[str], password: Optional[str]) -> User:
    """
    Check a username-or-email plus password.

    An identifier containing '@' is looked up as an email, anything else as
    a username.

    Unknown identifiers and wrong passwords fail with the same message; a
    password-less (Google only) account gets its own message and is never
    compared against a hash.
    """
    identifier = _clean(identifier)
    if not identifier or not password:
        raise ValidationError("Username and password are required.")

    if "@" in identifier:
        user = db.query(User).filter(User.email == identifier.lower()).first()
    else:
        user = db.query(User).filter(User.username == identifier).first()

    if user is None:
        dummy_verify()
        logger.info("Login failed: unknown identifier")
        raise Unauthenticated(INVALID_CREDENTIALS)

    if not user.password_hash:
        logger.info("Login refused for password-less account %s", user.id)
        raise Unauthenticated(EXTERNAL_ACCOUNT_ONLY)

    if not verify_password(password, user.password_hash):
        logger.info("Login failed: wrong password for user %s", user.id)
        raise Unauthenticated(INVALID_CREDENTIALS)

    return user


def update_user_profile(
    db: Session,
    user: User,
    username: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> User:
    """Apply the provided (non-blank) fields to ``user``; the password is re-hashed."""
    username = _clean_username(username)
    email = _normalize_email(email)
    if not username and not email and not password:
        raise ValidationError("No fields provided for update.")

    collisions = find_collisions(db, username, email, exclude_id=user.id)
    if collisions:
        raise Conflict(_conflict_message(collisions))

    if username:
        user.username = username
    if email:
        user.email = email
    if password:
        user.password_hash = _hash(password)
    user = _commit_user(db, user)
    logger.info("Updated profile of user %s", user.id)
    return user


def delete_user_account(db: Session, user_id: uuid.UUID) -> None:
    """
    Delete a user and everything that cannot outlive it.

    Records owned by the user go (with their comments). Categories and
    comments the user authored elsewhere stay, with the reference nulled.
    Sessions are left to the caller.
    """
    user = load_or_404(db, User, user_id, "User")
    owned_records = select(Record.id).where(Record.owner_id == user.id)

    db.query(Comment).filter(Comment.record_id.in_(owned_records)).delete(synchronize_session=False)
    records_deleted = db.query(Record).filter(Record.owner_id == user.id).delete(
        synchronize_session=False
    )
    db.query(Comment).filter(Comment.author_id == user.id).update(
        {Comment.author_id: None}, synchronize_session=False
    )
    db.query(Category).filter(Category.owner_id == user.id).update(
        {Category.owner_id: None}, synchronize_session=False
    )
    db.delete(user)
    db.commit()
    logger.info("Deleted user %s and %d record(s)", user_id, records_deleted)


def _username_base(profile: ExternalProfile) -> str:
    base = _clean(profile.display_name)
    if not base and profile.email:
        base = profile.email.split("@", 1)[0]
    base = re.sub(r"\s+", " ", (base or "").replace("@", " ")).strip() or "google-user"
    return base[:90]


def _unique_username(db: Session, base: str) -> str:
    candidate, suffix = base, 1
    while db.query(User.id).filter(User.username == candidate).first() is not None:
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate


def find_or_link_external_user(db: Session, profile: ExternalProfile) -> User:
    """
    Resolve a Google identity to a local user.

    1. A user already carrying this external id is returned as is.
    2. A user with the same email is linked only when the provider marks the
       email as verified; otherwise the sign-in is refused with 409.
    3. Otherwise a password-less account is created. An unverified email is
       not stored, so it cannot block a later local registration.
    """
    provider_id = _clean(profile.provider_id)
    if not provider_id:
        raise ValidationError("Invalid user info from identity provider.")

    user = db.query(User).filter(User.google_id == provider_id).first()
    if user is not None:
        return user

    email = _normalize_email(profile.email)
    if email:
        user = db.query(User).filter(User.email == email).first()
        if user is not None:
            if not profile.email_verified:
                logger.warning("Refused to link unverified email to user %s", user.id)
                raise Conflict(
                    "An account with this email already exists. "
                    "Log in with your password first."
                )
            if user.google_id:
                raise Conflict("This account is already linked to another Google identity.")
            user.google_id = provider_id
            user = _commit_user(db, user)
            logger.info("Linked Google identity to user %s", user.id)
            return user

    user = User(
        google_id=provider_id,
        email=email if profile.email_verified else None,
        username=_unique_username(db, _username_base(profile)),
    )
    db.add(user)
    user = _commit_user(db, user)
    logger.info("Created user %s from Google sign-in", user.id)
    return user
