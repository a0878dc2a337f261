"""Page-level entry points.

These return the data a page renders with; the markup itself lives in the
frontend. Every route here passes the path-level policy first, then its own
role gate.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request

from tourillo.errors import RedirectRequired
from tourillo.models.user import (
    DEFAULT_SESSION_ERROR_MESSAGE,
    SESSION_ERROR_MESSAGES,
    SessionPayload,
)
from tourillo.services.auth import (
    AdminSurface,
    SurfaceDecision,
    get_session_payload,
    require_auth,
    require_surface,
)
from tourillo.services.google_oauth import safe_callback_url
from tourillo.services.route_policy import authorize_path


# Codes the sign-in callback puts on /login?error=
LOGIN_ERROR_MESSAGES = {
    **SESSION_ERROR_MESSAGES,
    "OAuthCallback": "Sign in with Google failed. Please try again.",
    "Configuration": "Sign in is temporarily unavailable.",
}


def enforce_route_policy(request: Request, payload: SessionPayload = Depends(get_session_payload)) -> None:
    location = authorize_path(payload, request.url.path)
    if location is not None:
        raise RedirectRequired(location)


router = APIRouter(tags=["pages"], dependencies=[Depends(enforce_route_policy)])


@router.get("/login")
def login_page(callbackUrl: Optional[str] = None, error: Optional[str] = None):
    target = safe_callback_url(callbackUrl)
    return {
        "providers": [
            {
                "id": "google",
                "name": "Google",
                "signin_url": "/auth/signin/google?" + urlencode({"callbackUrl": target}),
            }
        ],
        "error": error,
        "message": LOGIN_ERROR_MESSAGES.get(error, DEFAULT_SESSION_ERROR_MESSAGE) if error else None,
    }


@router.get("/wishlist")
def wishlist_page(payload: SessionPayload = Depends(require_auth)):
    return {"wishlist_ids": payload.user.wishlist_ids}


def _surface_view(decision: SurfaceDecision, page: str) -> dict:
    return {
        "page": page,
        "surface": decision.surface.value,
        "role": decision.role.value,
        "layout": decision.layout.value,
    }


@router.get("/admin/dashboard")
def admin_dashboard(decision: SurfaceDecision = Depends(require_surface(AdminSurface.SHARED))):
    return _surface_view(decision, "dashboard")


@router.get("/admin/users-list")
def admin_users_list(decision: SurfaceDecision = Depends(require_surface(AdminSurface.ADMIN_ONLY))):
    return _surface_view(decision, "users-list")


@router.get("/admin/agents-list")
def admin_agents_list(decision: SurfaceDecision = Depends(require_surface(AdminSurface.ADMIN_ONLY))):
    return _surface_view(decision, "agents-list")


@router.get("/admin/admins-list")
def admin_admins_list(decision: SurfaceDecision = Depends(require_surface(AdminSurface.ADMIN_ONLY))):
    return _surface_view(decision, "admins-list")
