from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tourillo.models.user import SessionPayload, WishlistResult
from tourillo.models_sqlalchemy import get_db
from tourillo.services import wishlist as wishlist_service
from tourillo.services.auth import get_session_payload

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


def _unauthenticated(payload: SessionPayload) -> JSONResponse:
    body = WishlistResult(success=False, error=payload.error or "Not authenticated")
    return JSONResponse(body.model_dump(), status_code=401)


def _respond(result: WishlistResult) -> JSONResponse:
    status_code = 200 if result.success else 400
    if result.error == "User not found":
        status_code = 404
    return JSONResponse(result.model_dump(), status_code=status_code)


@router.get("", response_model=WishlistResult)
def read_wishlist(
    payload: SessionPayload = Depends(get_session_payload),
    db: Session = Depends(get_db),
):
    if not payload.is_authenticated:
        return _unauthenticated(payload)
    return _respond(wishlist_service.get_wishlist(db, payload.user.id))


@router.post("/{listing_id}", response_model=WishlistResult)
def add_listing(
    listing_id: str,
    payload: SessionPayload = Depends(get_session_payload),
    db: Session = Depends(get_db),
):
    if not payload.is_authenticated:
        return _unauthenticated(payload)
    return _respond(wishlist_service.add_to_wishlist(db, payload.user.id, listing_id))


@router.delete("/{listing_id}", response_model=WishlistResult)
def remove_listing(
    listing_id: str,
    payload: SessionPayload = Depends(get_session_payload),
    db: Session = Depends(get_db),
):
    if not payload.is_authenticated:
        return _unauthenticated(payload)
    return _respond(wishlist_service.remove_from_wishlist(db, payload.user.id, listing_id))
