from __future__ import annotations

from typing import Callable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tourillo.models.user import WishlistResult
from tourillo.models_sqlalchemy.models import User
from tourillo.utils.logger import logger, utcnow


def _with_added(ids: List[str], listing_id: str) -> List[str]:
    if listing_id in ids:
        return ids
    return ids + [listing_id]


def _with_removed(ids: List[str], listing_id: str) -> List[str]:
    return [i for i in ids if i != listing_id]


def _apply(
    db: Session,
    user_id: str,
    listing_id: str,
    op: Callable[[List[str], str], List[str]],
    action: str,
) -> WishlistResult:
    """Read-modify-write of one user's wishlist under a row lock.

    FOR UPDATE serializes concurrent writers on PostgreSQL; SQLite ignores it
    and relies on its database-level write lock instead.
    """

    if not listing_id:
        return WishlistResult(success=False, error="Listing id is required")

    try:
        user = db.query(User).filter(User.id == user_id).with_for_update().first()
        if user is None:
            return WishlistResult(success=False, error="User not found")

        current = list(user.wishlist_ids or [])
        updated = op(current, listing_id)
        if updated != current:
            # Assign a new list so the JSON column is flagged dirty.
            user.wishlist_ids = updated
            user.updated_at = utcnow()
            db.commit()
            logger.info("Wishlist %s: user=%s listing=%s", action, user_id, listing_id)
        else:
            db.rollback()
        return WishlistResult(success=True, wishlist_ids=updated)
    except SQLAlchemyError as e:
        logger.error(f"Wishlist {action} failed for user {user_id}: {type(e).__name__}: {e}")
        db.rollback()
        return WishlistResult(success=False, error=f"Failed to {action} wishlist")


def add_to_wishlist(db: Session, user_id: str, listing_id: str) -> WishlistResult:
    return _apply(db, user_id, listing_id, _with_added, "add to")


def remove_from_wishlist(db: Session, user_id: str, listing_id: str) -> WishlistResult:
    return _apply(db, user_id, listing_id, _with_removed, "remove from")


def get_wishlist(db: Session, user_id: str) -> WishlistResult:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return WishlistResult(success=False, error="User not found")
    return WishlistResult(success=True, wishlist_ids=list(user.wishlist_ids or []))
