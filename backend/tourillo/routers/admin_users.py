from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from tourillo.errors import Unauthorized, UserNotFound
from tourillo.models.user import SessionPayload, UserResponse, UserStatusUpdate, UserUpdate
from tourillo.models_sqlalchemy import get_db
from tourillo.services import user_admin
from tourillo.services.auth import require_api_admin
from tourillo.utils.logger import logger

router = APIRouter(prefix="/api/admin/users", tags=["admin-users"])


def _not_found(user_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")


@router.get("/", response_model=List[UserResponse])
def list_users(
    kind: str = Query("all", pattern="^(all|users|agents|admins)$"),
    _: SessionPayload = Depends(require_api_admin),
    db: Session = Depends(get_db),
):
    return user_admin.list_users(db, kind)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, _: SessionPayload = Depends(require_api_admin), db: Session = Depends(get_db)):
    try:
        user = user_admin.get_user(db, user_id)
    except UserNotFound:
        raise _not_found(user_id)
    return user_admin.to_user_response(user, len(user.sessions))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    update: UserUpdate,
    admin: SessionPayload = Depends(require_api_admin),
    db: Session = Depends(get_db),
):
    try:
        user = user_admin.update_user(db, user_id, update)
    except UserNotFound:
        raise _not_found(user_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.info(f"Admin {admin.user.email} updated user {user.email}")
    return user_admin.to_user_response(user, len(user.sessions))


@router.post("/{user_id}/status", response_model=UserResponse)
def set_status(
    user_id: str,
    body: UserStatusUpdate,
    _: SessionPayload = Depends(require_api_admin),
    db: Session = Depends(get_db),
):
    try:
        user = user_admin.set_active(db, user_id, body.is_active)
    except UserNotFound:
        raise _not_found(user_id)
    return user_admin.to_user_response(user, len(user.sessions))


@router.post("/{user_id}/promote", response_model=UserResponse)
def promote(user_id: str, _: SessionPayload = Depends(require_api_admin), db: Session = Depends(get_db)):
    try:
        user = user_admin.promote_to_admin(db, user_id)
    except UserNotFound:
        raise _not_found(user_id)
    return user_admin.to_user_response(user, len(user.sessions))


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    admin: SessionPayload = Depends(require_api_admin),
    db: Session = Depends(get_db),
):
    try:
        user_admin.delete_user(db, user_id, acting_user_id=admin.user.id)
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except UserNotFound:
        raise _not_found(user_id)
    logger.info(f"Admin {admin.user.email} deleted user {user_id}")
    return {"success": True}
