"""Path-level access policy applied before page handlers run.

authorize_path() returns None to let the request through, or the location
the visitor should be redirected to.
"""

from typing import Iterable, Optional
from urllib.parse import urlencode

from tourillo.models.user import SessionPayload

PUBLIC_ROUTES = ("/", "/about", "/about-us", "/contact", "/contact-us", "/packages*", "/blogs*", "/search",
                 "/payments", "/legal*", "/itinerary/view*", "/voucher/view*")
AUTH_ROUTES = ("/login", "/register", "/auth/signin", "/auth/signup", "/auth/error", "/auth/verify-request")
PROTECTED_ROUTES = ("/dashboard", "/profile", "/settings", "/account", "/wishlist")
ADMIN_ROUTES = ("/admin",)


def matches_route(routes: Iterable[str], path: str) -> bool:
    """A trailing ``*`` is a prefix match; otherwise the route or a sub-path.

    The root route only ever matches "/" itself.
    """
    for route in routes:
        if route.endswith("*"):
            if path.startswith(route[:-1]):
                return True
            continue
        prefix = route.rstrip("/")
        if path == route or (prefix and path.startswith(prefix + "/")):
            return True
    return False


def login_redirect(path: str) -> str:
    return "/login?" + urlencode({"callbackUrl": path})


def authorize_path(payload: SessionPayload, path: str) -> Optional[str]:
    # A session carrying an error tag counts as signed out.
    is_logged_in = payload.is_authenticated

    if matches_route(AUTH_ROUTES, path):
        return "/" if is_logged_in else None

    if matches_route(PUBLIC_ROUTES, path):
        return None

    if matches_route(ADMIN_ROUTES, path) or matches_route(PROTECTED_ROUTES, path):
        return None if is_logged_in else login_redirect(path)

    return None
