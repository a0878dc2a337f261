from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tourillo.errors import Unauthorized, UserNotFound
from tourillo.models.user import UserResponse, UserUpdate
from tourillo.models_sqlalchemy.models import User, UserSession
from tourillo.services import session_manager
from tourillo.utils.logger import logger, utcnow

USER_KINDS = ("all", "users", "agents", "admins")


def _session_counts(db: Session, user_ids: List[str]) -> Dict[str, int]:
    if not user_ids:
        return {}
    rows = (
        db.query(UserSession.user_id, func.count(UserSession.id))
        .filter(UserSession.user_id.in_(user_ids))
        .group_by(UserSession.user_id)
        .all()
    )
    return {user_id: count for user_id, count in rows}


def to_user_response(user: User, session_count: int = 0) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        image=user.image,
        is_admin=bool(user.is_admin),
        is_agent=bool(user.is_agent),
        is_active=bool(user.is_active),
        last_login_at=user.last_login_at,
        created_at=user.created_at,
        session_count=session_count,
    )


def list_users(db: Session, kind: str = "all") -> List[UserResponse]:
    """List users newest first.

    ``users`` are plain customers (neither flag), ``agents`` and ``admins``
    filter on the respective flag, so a user holding both flags shows up in
    both lists.
    """

    if kind not in USER_KINDS:
        raise ValueError(f"Unknown user kind: {kind}")

    query = db.query(User)
    if kind == "users":
        query = query.filter(User.is_admin.is_(False), User.is_agent.is_(False))
    elif kind == "agents":
        query = query.filter(User.is_agent.is_(True))
    elif kind == "admins":
        query = query.filter(User.is_admin.is_(True))

    users = query.order_by(User.created_at.desc()).all()
    counts = _session_counts(db, [u.id for u in users])
    return [to_user_response(u, counts.get(u.id, 0)) for u in users]


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFound(user_id)
    return user


def update_user(db: Session, user_id: str, update: UserUpdate) -> User:
    """Apply a partial update. Deactivation also clears the user's sessions
    and both changes land in the same commit."""

    changes = update.model_dump(exclude_unset=True)
    try:
        user = db.query(User).filter(User.id == user_id).with_for_update().first()
        if user is None:
            raise UserNotFound(user_id)

        if "email" in changes and changes["email"] is not None:
            email = str(changes["email"]).strip().lower()
            clash = (
                db.query(User.id)
                .filter(func.lower(User.email) == email, User.id != user_id)
                .first()
            )
            if clash:
                raise ValueError("User with this email already exists")
            user.email = email

        if "name" in changes and changes["name"] is not None:
            user.name = changes["name"]
        for flag in ("is_admin", "is_agent"):
            if changes.get(flag) is not None:
                setattr(user, flag, bool(changes[flag]))

        deactivating = changes.get("is_active") is False and user.is_active
        if changes.get("is_active") is not None:
            user.is_active = bool(changes["is_active"])
        if deactivating:
            session_manager.invalidate_all_sessions(db, user_id, commit=False)

        user.updated_at = utcnow()
        db.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to update user {user_id}; rolling back")
        db.rollback()
        raise
    except (UserNotFound, ValueError):
        db.rollback()
        raise

    db.refresh(user)
    logger.info(f"Admin updated user {user.email}: {sorted(changes)}")
    return user


def set_active(db: Session, user_id: str, is_active: bool) -> User:
    if is_active:
        return session_manager.reactivate_user(db, user_id)
    session_manager.deactivate_user(db, user_id)
    return get_user(db, user_id)


def promote_to_admin(db: Session, user_id: str) -> User:
    user = get_user(db, user_id)
    user.is_admin = True
    user.updated_at = utcnow()
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.email} promoted to admin")
    return user


def delete_user(db: Session, user_id: str, *, acting_user_id: Optional[str]) -> None:
    if acting_user_id is not None and acting_user_id == user_id:
        raise Unauthorized("Cannot delete your own account")
    session_manager.delete_user(db, user_id)
