"""Client-side mirror of the signed-in user.

``AuthMirror`` is the one place a client keeps "who am I" between session
checks. It is an explicit object handed to whatever needs it; create it at
startup and ``teardown()`` it on sign-out.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

import httpx

from tourillo.models.user import (
    DEFAULT_SESSION_ERROR_MESSAGE,
    SESSION_ERROR_MESSAGES,
    SessionPayload,
    SessionUser,
)
from tourillo.utils.logger import logger

if TYPE_CHECKING:
    from tourillo.client.api import TourilloApi

LOGIN_PATH = "/login"

# (level, message); level is "success" or "error".
Notifier = Callable[[str, str], None]
Navigator = Callable[[str], None]


def log_notification(level: str, message: str) -> None:
    if level == "error":
        logger.warning("notify: %s", message)
    else:
        logger.info("notify: %s", message)


def log_navigation(path: str) -> None:
    logger.info("navigate: %s", path)


class AuthStatus(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class AuthMirror:
    def __init__(self, notify: Optional[Notifier] = None, navigate: Optional[Navigator] = None):
        self.notify: Notifier = notify or log_notification
        self.navigate: Navigator = navigate or log_navigation
        self.status = AuthStatus.LOADING
        self.user: Optional[SessionUser] = None
        self._seq = 0
        # Bumped whenever the mirror is rebuilt from a session or torn down.
        self.session_epoch = 0

    @property
    def is_loading(self) -> bool:
        return self.status is AuthStatus.LOADING

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED and self.user is not None

    @property
    def is_unauthenticated(self) -> bool:
        return self.status is AuthStatus.UNAUTHENTICATED

    def begin_check(self) -> int:
        """Start a session check; only the newest check may update the mirror."""
        self._seq += 1
        return self._seq

    def apply_session(self, payload: SessionPayload, seq: int) -> bool:
        """Apply the result of check ``seq``. Returns False when it was stale."""
        if seq != self._seq:
            logger.debug("Dropping stale session result seq=%s latest=%s", seq, self._seq)
            return False

        self.session_epoch += 1
        if payload.error:
            logger.warning("Session error: %s", payload.error)
            self._clear()
            self.notify("error", SESSION_ERROR_MESSAGES.get(payload.error, DEFAULT_SESSION_ERROR_MESSAGE))
            self.navigate(LOGIN_PATH)
        elif payload.user is not None:
            self.user = payload.user.model_copy(deep=True)
            self.status = AuthStatus.AUTHENTICATED
        else:
            self._clear()
        return True

    async def refresh(self, api: "TourilloApi") -> bool:
        seq = self.begin_check()
        try:
            payload = await api.fetch_session()
        except httpx.HTTPError as e:
            logger.error(f"Session check failed: {type(e).__name__}: {e}")
            if seq == self._seq and self.is_loading:
                self.status = AuthStatus.UNAUTHENTICATED
            raise
        applied = self.apply_session(payload, seq)
        if applied and payload.error:
            await self._end_server_session(api)
        return applied

    async def _end_server_session(self, api: "TourilloApi") -> None:
        try:
            await api.sign_out()
        except httpx.HTTPError as e:
            # The tagged answer already cleared the cookie; the row expires on its own.
            logger.error(f"Server sign-out after session error failed: {type(e).__name__}: {e}")

    async def sign_out(self, api: "TourilloApi") -> None:
        try:
            await api.sign_out()
        finally:
            self.teardown()
        self.navigate(LOGIN_PATH)

    def teardown(self) -> None:
        # Bumping the sequence drops any check still in flight.
        self._seq += 1
        self.session_epoch += 1
        self._clear()

    def _clear(self) -> None:
        self.user = None
        self.status = AuthStatus.UNAUTHENTICATED

    def is_liked(self, listing_id: str) -> Optional[bool]:
        """None while the first check is pending; nothing is known yet."""
        if self.is_loading:
            return None
        if self.user is None:
            return False
        return listing_id in self.user.wishlist_ids

    def set_liked(self, listing_id: str, liked: bool) -> None:
        if self.user is None:
            return
        ids = self.user.wishlist_ids
        if liked and listing_id not in ids:
            self.user.wishlist_ids = ids + [listing_id]
        elif not liked and listing_id in ids:
            self.user.wishlist_ids = [i for i in ids if i != listing_id]
