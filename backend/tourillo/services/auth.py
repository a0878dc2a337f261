from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from tourillo.config import settings
from tourillo.errors import RedirectRequired
from tourillo.models.session import InvalidSession, SessionResult, ValidSession
from tourillo.models.user import SessionPayload, UserRole
from tourillo.models_sqlalchemy import get_db
from tourillo.services.session_manager import resolve_session
from tourillo.utils.logger import logger

LOGIN_PATH = "/login"
HOME_PATH = "/"
ADMIN_DASHBOARD_PATH = "/admin/dashboard"


# ---------------------------------------------------------------------------
# Session cookie
# ---------------------------------------------------------------------------

def get_session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=int(settings.session_max_age.total_seconds()),
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


# ---------------------------------------------------------------------------
# Request authentication
# ---------------------------------------------------------------------------

def payload_from_result(result: SessionResult) -> SessionPayload:
    if isinstance(result, InvalidSession):
        return SessionPayload(error=result.kind.client_tag)
    return SessionPayload(user=result.user, expires=result.expires_at)


def authenticate(request: Request, db: Session) -> SessionPayload:
    """Resolve the request's session cookie into a payload.

    Never raises for invalid sessions: "no session" comes back as an empty
    payload and an unusable subject as a payload carrying an ``error`` tag.
    The result is memoized on ``request.state`` for the rest of the request.
    """

    cached = getattr(request.state, "auth_payload", None)
    if cached is not None:
        return cached

    result = resolve_session(db, get_session_token(request))
    payload = payload_from_result(result)
    if payload.error:
        logger.warning("Session for %s carries error=%s", request.url.path, payload.error)
    if isinstance(result, ValidSession) and result.renewed:
        # The middleware re-issues the cookie so its max-age follows the row.
        request.state.renewed_session_token = result.token
    request.state.auth_payload = payload
    return payload


def get_session_payload(request: Request, db: Session = Depends(get_db)) -> SessionPayload:
    return authenticate(request, db)


def require_auth(payload: SessionPayload = Depends(get_session_payload)) -> SessionPayload:
    """Page gate: signed-in visitors only, everybody else goes to /login."""
    if not payload.is_authenticated:
        raise RedirectRequired(LOGIN_PATH)
    return payload


def require_admin(payload: SessionPayload = Depends(require_auth)) -> SessionPayload:
    """Page gate: admins only, other signed-in visitors go home."""
    if not payload.user.is_admin:
        logger.warning(f"Non-admin user attempted admin page: {payload.user.email}")
        raise RedirectRequired(HOME_PATH)
    return payload


def require_api_user(payload: SessionPayload = Depends(get_session_payload)) -> SessionPayload:
    if not payload.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=payload.error or "Not authenticated",
        )
    return payload


def require_api_admin(payload: SessionPayload = Depends(require_api_user)) -> SessionPayload:
    if not payload.user.is_admin:
        logger.warning(f"Non-admin user attempted admin action: {payload.user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return payload


# ---------------------------------------------------------------------------
# Admin surfaces
# ---------------------------------------------------------------------------

class AdminSurface(str, Enum):
    SHARED = "shared"          # dashboard and content areas open to admins and agents
    ADMIN_ONLY = "admin_only"  # user / agent / admin management


class AdminLayout(str, Enum):
    FULL = "full"
    AGENT = "agent"


# None means "allowed"; a string is the redirect target. Every role must be
# listed for every surface.
_SURFACE_RULES: Dict[AdminSurface, Dict[UserRole, Optional[str]]] = {
    AdminSurface.SHARED: {
        UserRole.GUEST: HOME_PATH,
        UserRole.USER: HOME_PATH,
        UserRole.AGENT: None,
        UserRole.ADMIN: None,
    },
    AdminSurface.ADMIN_ONLY: {
        UserRole.GUEST: HOME_PATH,
        UserRole.USER: HOME_PATH,
        UserRole.AGENT: ADMIN_DASHBOARD_PATH,
        UserRole.ADMIN: None,
    },
}


@dataclass(frozen=True)
class SurfaceDecision:
    surface: AdminSurface
    role: UserRole
    redirect_to: Optional[str] = None
    layout: Optional[AdminLayout] = None

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None


def admin_layout_for(role: UserRole) -> AdminLayout:
    if role is UserRole.ADMIN:
        return AdminLayout.FULL
    if role is UserRole.AGENT:
        return AdminLayout.AGENT
    raise ValueError(f"Role {role.value} has no admin layout")


def gate_admin_surface(role: UserRole, surface: AdminSurface) -> SurfaceDecision:
    rules = _SURFACE_RULES[surface]
    if role not in rules:
        raise ValueError(f"No gate rule for role {role.value} on surface {surface.value}")

    redirect_to = rules[role]
    if redirect_to is not None:
        return SurfaceDecision(surface=surface, role=role, redirect_to=redirect_to)
    return SurfaceDecision(surface=surface, role=role, layout=admin_layout_for(role))


def require_surface(surface: AdminSurface) -> Callable[..., SurfaceDecision]:
    """Dependency factory gating an admin page by role."""

    def dependency(payload: SessionPayload = Depends(get_session_payload)) -> SurfaceDecision:
        decision = gate_admin_surface(payload.role, surface)
        if not decision.allowed:
            logger.info(
                "Admin surface %s denied for role=%s -> %s",
                surface.value,
                decision.role.value,
                decision.redirect_to,
            )
            raise RedirectRequired(decision.redirect_to)
        return decision

    return dependency
