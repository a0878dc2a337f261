"""Exceptions shared by the auth services, routers and the client package.

Expected invalid-session cases are reported as tagged results, not raised;
these exceptions cover the places where a caller cannot continue.
"""

from typing import Optional


class AuthError(Exception):
    """Base class for authentication / authorization failures."""


class Unauthenticated(AuthError):
    """No usable session; recoverable by signing in."""


class Unauthorized(AuthError):
    """Valid session whose role is not allowed here."""


class UserInactive(AuthError):
    """The subject of a session or sign-in has been deactivated."""


class UserNotFound(AuthError):
    """The subject of a session or admin action no longer exists."""


class DatabaseError(AuthError):
    """Transient store fault while resolving auth state."""


class OAuthError(AuthError):
    """The external identity provider rejected or failed the exchange."""

    def __init__(self, reason: str, detail: Optional[str] = None):
        super().__init__(detail or reason)
        self.reason = reason


class RedirectRequired(Exception):
    """Raised by page gates; the app turns it into a 303 redirect."""

    def __init__(self, location: str):
        super().__init__(location)
        self.location = location
