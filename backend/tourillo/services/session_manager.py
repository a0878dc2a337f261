from __future__ import annotations

import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tourillo.config import settings
from tourillo.errors import UserNotFound
from tourillo.models.session import (
    InvalidSession,
    IssuedSession,
    SessionErrorKind,
    SessionResult,
    ValidSession,
)
from tourillo.models.user import SessionUser
from tourillo.models_sqlalchemy.models import User, UserSession
from tourillo.utils.logger import logger, mask_secret, utcnow


SESSION_TOKEN_BYTES = 32


def to_session_user(user: User) -> SessionUser:
    return SessionUser(
        id=user.id,
        name=user.name,
        email=user.email,
        image=user.image,
        is_admin=bool(user.is_admin),
        is_agent=bool(user.is_agent),
        wishlist_ids=list(user.wishlist_ids or []),
    )


def create_session(
    db: Session,
    user_id: str,
    *,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> IssuedSession:
    """Persist a new opaque session token for ``user_id``.

    The token is what travels in the session cookie; nothing else about the
    session is exposed to the browser.
    """

    now = now or utcnow()
    token = secrets.token_urlsafe(SESSION_TOKEN_BYTES)
    expires_at = now + settings.session_max_age

    db.add(
        UserSession(
            session_token=token,
            user_id=user_id,
            expires_at=expires_at,
            refreshed_at=now,
            created_at=now,
        )
    )
    if commit:
        db.commit()
    else:
        db.flush()

    logger.info("Session created for user %s token=%s", user_id, mask_secret(token))
    return IssuedSession(token=token, expires_at=expires_at)


def resolve_session(db: Session, token: Optional[str], *, now: Optional[datetime] = None) -> SessionResult:
    """Resolve a cookie token into a ValidSession or a tagged InvalidSession.

    Order of checks: unknown token, missing user, inactive user, expiry. The
    inactive check precedes expiry so a deactivated subject is reported as
    such whatever the state of the row. Store faults come back as
    DATABASE_ERROR instead of raising.

    Resolving a session older than the update age slides its expiry forward.
    """

    if not token:
        return InvalidSession(SessionErrorKind.NOT_FOUND)

    now = now or utcnow()
    try:
        row = (
            db.query(UserSession, User)
            .outerjoin(User, UserSession.user_id == User.id)
            .filter(UserSession.session_token == token)
            .first()
        )
        if row is None:
            return InvalidSession(SessionErrorKind.NOT_FOUND)

        session_row, user = row
        if user is None:
            logger.warning("Session invalidated - user not found: %s", session_row.user_id)
            return InvalidSession(SessionErrorKind.USER_NOT_FOUND)

        if not user.is_active:
            logger.warning("Session invalidated - user inactive: %s", user.id)
            return InvalidSession(SessionErrorKind.USER_INACTIVE)

        if session_row.expires_at <= now:
            logger.info("Session expired for user %s token=%s", user.id, mask_secret(token))
            db.delete(session_row)
            db.commit()
            return InvalidSession(SessionErrorKind.NOT_FOUND)

        session_user = to_session_user(user)
        expires_at = session_row.expires_at
        refreshed_at = session_row.refreshed_at
        renewed = False

        if now - refreshed_at > settings.session_update_age:
            expires_at = now + settings.session_max_age
            refreshed_at = now
            session_row.expires_at = expires_at
            session_row.refreshed_at = refreshed_at
            db.commit()
            renewed = True
            logger.info("Session renewed for user %s until %s", session_user.id, expires_at.isoformat())

        return ValidSession(
            token=token,
            user=session_user,
            expires_at=expires_at,
            refreshed_at=refreshed_at,
            renewed=renewed,
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error while resolving session: {type(e).__name__}: {e}")
        db.rollback()
        return InvalidSession(SessionErrorKind.DATABASE_ERROR)


def destroy_session(db: Session, token: Optional[str]) -> bool:
    """Delete one session (sign-out). Unknown tokens are a no-op."""

    if not token:
        return False
    deleted = (
        db.query(UserSession)
        .filter(UserSession.session_token == token)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Session destroyed token=%s", mask_secret(token))
    return bool(deleted)


def invalidate_all_sessions(db: Session, user_id: str, *, commit: bool = True) -> int:
    """Delete every session of ``user_id`` and return how many were removed.

    With ``commit=False`` the delete joins the caller's transaction.
    """

    deleted = (
        db.query(UserSession)
        .filter(UserSession.user_id == user_id)
        .delete(synchronize_session=False)
    )
    if commit:
        db.commit()
    logger.info("Invalidated %s session(s) for user %s", deleted, user_id)
    return deleted


def deactivate_user(db: Session, user_id: str) -> int:
    """Flip ``is_active`` off and wipe the user's sessions in one transaction."""

    try:
        user = db.query(User).filter(User.id == user_id).with_for_update().first()
        if user is None:
            raise UserNotFound(user_id)

        user.is_active = False
        user.updated_at = utcnow()
        removed = invalidate_all_sessions(db, user_id, commit=False)
        db.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to deactivate user {user_id}; rolling back")
        db.rollback()
        raise

    logger.info(f"User {user_id} deactivated and {removed} session(s) cleared")
    return removed


def reactivate_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFound(user_id)

    user.is_active = True
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} reactivated")
    return user


def delete_user(db: Session, user_id: str) -> None:
    """Hard delete; sessions and linked accounts go with the user."""

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFound(user_id)

    try:
        db.delete(user)
        db.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to delete user {user_id}; rolling back")
        db.rollback()
        raise
    logger.info(f"User {user_id} deleted")
