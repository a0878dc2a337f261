from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from tourillo.errors import DatabaseError, OAuthError, UserInactive
from tourillo.models.user import SessionPayload
from tourillo.models_sqlalchemy import get_db
from tourillo.services import google_oauth
from tourillo.services.accounts import sign_in_with_google
from tourillo.services.auth import (
    LOGIN_PATH,
    clear_session_cookie,
    get_session_payload,
    get_session_token,
    set_session_cookie,
)
from tourillo.services.session_manager import destroy_session
from tourillo.utils.logger import logger

router = APIRouter(prefix="/auth", tags=["authentication"])


def _login_error(code: str) -> RedirectResponse:
    return RedirectResponse(f"{LOGIN_PATH}?{urlencode({'error': code})}", status_code=303)


@router.get("/signin/google")
async def signin_google(request: Request, callbackUrl: Optional[str] = None):
    rid = getattr(request.state, "rid", "unknown")
    try:
        url = google_oauth.build_authorization_url(callbackUrl)
    except OAuthError as e:
        logger.error(f"Google sign-in unavailable rid={rid}: {e}")
        return _login_error("Configuration")
    logger.info(f"Redirecting to Google consent rid={rid}")
    return RedirectResponse(url, status_code=303)


@router.get("/callback/google")
async def callback_google(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    rid = getattr(request.state, "rid", "unknown")
    if error:
        logger.warning(f"Google returned error={error} rid={rid}")
        return _login_error("OAuthCallback")
    if not code:
        return _login_error("OAuthCallback")

    try:
        callback_url = google_oauth.decode_state(state)
        tokens = await google_oauth.exchange_code(code)
        profile = await google_oauth.fetch_profile(tokens.access_token)
    except OAuthError as e:
        logger.warning(f"Google OAuth failed reason={e.reason} rid={rid}")
        return _login_error("OAuthCallback")

    try:
        issued = await run_in_threadpool(sign_in_with_google, db, profile, tokens)
    except UserInactive:
        return _login_error("user-inactive")
    except DatabaseError:
        return _login_error("database-error")

    response = RedirectResponse(callback_url, status_code=303)
    set_session_cookie(response, issued.token)
    logger.info(f"Google sign-in complete for {profile.email} rid={rid}")
    return response


@router.api_route("/signout", methods=["GET", "POST"])
def signout(request: Request, db: Session = Depends(get_db)):
    destroy_session(db, get_session_token(request))
    response = RedirectResponse(LOGIN_PATH, status_code=303)
    clear_session_cookie(response)
    return response


@router.get("/session", response_model=SessionPayload)
def read_session(response: Response, payload: SessionPayload = Depends(get_session_payload)):
    if payload.error:
        # The cookie points at a subject that can no longer sign in.
        clear_session_cookie(response)
    return payload
