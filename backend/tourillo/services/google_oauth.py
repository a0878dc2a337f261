from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

import httpx
from jose import JWTError, jwt

from tourillo.config import settings
from tourillo.errors import OAuthError
from tourillo.utils.logger import logger, utcnow


GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

STATE_PURPOSE = "google-signin"
STATE_TTL = timedelta(minutes=10)
HTTP_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


@dataclass(frozen=True)
class GoogleTokens:
    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_at: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None


@dataclass(frozen=True)
class GoogleProfile:
    sub: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None
    email_verified: bool = False


def safe_callback_url(url: Optional[str]) -> str:
    """Only same-site relative paths are honoured as post sign-in targets."""
    if not url or not url.startswith("/") or url.startswith("//") or "\\" in url:
        return "/"
    return url


def encode_state(callback_url: Optional[str], *, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    payload = {
        "purpose": STATE_PURPOSE,
        "cb": safe_callback_url(callback_url),
        "nonce": secrets.token_urlsafe(16),
        "exp": now + STATE_TTL,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.ALGORITHM)


def decode_state(state: Optional[str]) -> str:
    """Verify the signed ``state`` and return the callback URL it carries."""
    if not state:
        raise OAuthError("missing_state")
    try:
        payload = jwt.decode(state, settings.secret_key, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected Google OAuth state: {e}")
        raise OAuthError("invalid_state", str(e))
    if payload.get("purpose") != STATE_PURPOSE:
        raise OAuthError("invalid_state")
    return safe_callback_url(payload.get("cb"))


def _require_client_id() -> str:
    if not settings.AUTH_GOOGLE_ID:
        raise OAuthError("server_config", "Google sign-in is not configured (missing AUTH_GOOGLE_ID)")
    return settings.AUTH_GOOGLE_ID


def build_authorization_url(callback_url: Optional[str]) -> str:
    params = {
        "client_id": _require_client_id(),
        "redirect_uri": settings.google_redirect_uri,
        "response_type": "code",
        "scope": settings.GOOGLE_OAUTH_SCOPES,
        "access_type": "offline",
        "prompt": "select_account",
        "state": encode_state(callback_url),
    }
    return GOOGLE_AUTH_URL + "?" + urlencode(params)


async def exchange_code(code: str) -> GoogleTokens:
    client_id = _require_client_id()
    if not settings.AUTH_GOOGLE_SECRET:
        raise OAuthError("server_config", "Google sign-in is not configured (missing AUTH_GOOGLE_SECRET)")

    data = {
        "client_id": client_id,
        "client_secret": settings.AUTH_GOOGLE_SECRET,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": settings.google_redirect_uri,
    }
    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            resp = await client.post(GOOGLE_TOKEN_URL, data=data)
    except httpx.HTTPError as e:
        logger.error("HTTP error talking to Google token endpoint: %s", e)
        raise OAuthError("token_http", str(e))

    if resp.status_code != 200:
        logger.error("Google token endpoint error: status=%s body=%s", resp.status_code, resp.text)
        raise OAuthError("token_failed")

    body = resp.json()
    access_token = body.get("access_token")
    if not access_token:
        raise OAuthError("missing_access_token")

    expires_in = body.get("expires_in")
    return GoogleTokens(
        access_token=access_token,
        refresh_token=body.get("refresh_token"),
        id_token=body.get("id_token"),
        expires_at=int(time.time()) + int(expires_in) if expires_in else None,
        token_type=body.get("token_type"),
        scope=body.get("scope"),
    )


async def fetch_profile(access_token: str) -> GoogleProfile:
    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            resp = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
    except httpx.HTTPError as e:
        logger.error("HTTP error calling Google userinfo: %s", e)
        raise OAuthError("profile_http", str(e))

    if resp.status_code != 200:
        logger.warning("Google userinfo returned %s: %s", resp.status_code, resp.text)
        raise OAuthError("profile_failed")

    info = resp.json()
    if not info.get("sub") or not info.get("email"):
        raise OAuthError("profile_incomplete")

    return GoogleProfile(
        sub=str(info["sub"]),
        email=str(info["email"]).strip().lower(),
        name=info.get("name"),
        picture=info.get("picture"),
        email_verified=bool(info.get("email_verified")),
    )
