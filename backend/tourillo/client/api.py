from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import httpx

from tourillo.config import settings
from tourillo.models.user import SessionPayload, WishlistResult
from tourillo.utils.logger import logger

HTTP_TIMEOUT = httpx.Timeout(15.0, connect=5.0)


class TourilloApi:
    """Async HTTP client for the session and wishlist endpoints.

    Wishlist calls return the server's ``WishlistResult`` even for 4xx
    answers; transport failures and 5xx surface as ``httpx.HTTPError``.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        session_token: Optional[str] = None,
        cookie_name: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=HTTP_TIMEOUT)
        if session_token:
            self._client.cookies.set(cookie_name or settings.session_cookie_name, session_token)

    async def __aenter__(self) -> "TourilloApi":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_session(self) -> SessionPayload:
        resp = await self._client.get("/auth/session")
        resp.raise_for_status()
        return SessionPayload.model_validate(resp.json())

    async def add_to_wishlist(self, listing_id: str) -> WishlistResult:
        resp = await self._client.post(f"/api/wishlist/{quote(listing_id, safe='')}")
        return self._wishlist_result(resp)

    async def remove_from_wishlist(self, listing_id: str) -> WishlistResult:
        resp = await self._client.delete(f"/api/wishlist/{quote(listing_id, safe='')}")
        return self._wishlist_result(resp)

    async def sign_out(self) -> None:
        resp = await self._client.post("/auth/signout", follow_redirects=False)
        if resp.status_code >= 400:
            resp.raise_for_status()

    @staticmethod
    def _wishlist_result(resp: httpx.Response) -> WishlistResult:
        if resp.status_code >= 500:
            resp.raise_for_status()
        try:
            return WishlistResult.model_validate(resp.json())
        except ValueError:
            logger.warning("Unexpected wishlist response status=%s body=%s", resp.status_code, resp.text[:200])
            resp.raise_for_status()
            return WishlistResult(success=False, error="Unexpected response from server")
