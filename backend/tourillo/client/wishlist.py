from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import httpx

from tourillo.client.mirror import LOGIN_PATH, AuthMirror
from tourillo.errors import Unauthenticated
from tourillo.utils.logger import logger

if TYPE_CHECKING:
    from tourillo.client.api import TourilloApi

LOGIN_REQUIRED_MESSAGE = "Please login to add to wishlist"
GENERIC_FAILURE_MESSAGE = "Something went wrong"


class ToggleState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class WishlistToggle:
    """One optimistic like/unlike: applied tentatively, then committed or rolled back."""

    def __init__(self, listing_id: str, previous: bool, desired: bool):
        self.listing_id = listing_id
        self.previous = previous
        self.desired = desired
        self.state = ToggleState.PENDING

    @classmethod
    def begin(cls, mirror: AuthMirror, listing_id: str) -> "WishlistToggle":
        previous = bool(mirror.is_liked(listing_id))
        toggle = cls(listing_id, previous=previous, desired=not previous)
        mirror.set_liked(listing_id, toggle.desired)
        return toggle

    def _finish(self, state: ToggleState) -> None:
        if self.state is not ToggleState.PENDING:
            raise RuntimeError(f"Toggle for {self.listing_id} already {self.state.value}")
        self.state = state

    def commit(self, mirror: Optional[AuthMirror] = None) -> None:
        self._finish(ToggleState.COMMITTED)
        if mirror is not None:
            mirror.set_liked(self.listing_id, self.desired)

    def rollback(self, mirror: Optional[AuthMirror], restore_to: bool) -> None:
        self._finish(ToggleState.ROLLED_BACK)
        if mirror is not None:
            mirror.set_liked(self.listing_id, restore_to)


class WishlistMutator:
    """Optimistic wishlist toggling against the server.

    The mirror flips as soon as ``toggle`` starts. Server calls for one
    listing run one at a time in call order, so the newest toggle's response
    is always the last one seen. Only the newest toggle touches the mirror
    when it settles; older ones just record what the server confirmed.
    A toggle that settles after the mirror was rebuilt from a session check
    leaves the mirror alone. Per-listing bookkeeping is dropped once the
    last toggle for that listing settles.
    """

    def __init__(self, mirror: AuthMirror, api: "TourilloApi"):
        self.mirror = mirror
        self.api = api
        self._epoch = mirror.session_epoch
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pending: Dict[str, int] = {}
        self._confirmed: Dict[str, bool] = {}
        self._latest: Dict[str, WishlistToggle] = {}

    def confirmed(self, listing_id: str) -> Optional[bool]:
        """Last server-confirmed state while toggles for ``listing_id`` are in flight."""
        return self._confirmed.get(listing_id)

    @property
    def in_flight(self) -> int:
        return sum(self._pending.values())

    async def toggle(self, listing_id: str) -> WishlistToggle:
        if not self.mirror.is_authenticated:
            self.mirror.notify("error", LOGIN_REQUIRED_MESSAGE)
            self.mirror.navigate(LOGIN_PATH)
            raise Unauthenticated(LOGIN_REQUIRED_MESSAGE)

        if self._epoch != self.mirror.session_epoch:
            self._epoch = self.mirror.session_epoch
            self._confirmed.clear()
            self._latest.clear()
        if listing_id not in self._latest:
            self._confirmed[listing_id] = bool(self.mirror.is_liked(listing_id))

        epoch = self._epoch
        toggle = WishlistToggle.begin(self.mirror, listing_id)
        self._latest[listing_id] = toggle
        self._pending[listing_id] = self._pending.get(listing_id, 0) + 1

        lock = self._locks.setdefault(listing_id, asyncio.Lock())
        try:
            async with lock:
                ok, error = await self._send(listing_id, toggle.desired)
            self._settle(toggle, epoch, ok, error)
        finally:
            self._release(listing_id)
        return toggle

    def _settle(self, toggle: WishlistToggle, epoch: int, ok: bool, error: str) -> None:
        listing_id = toggle.listing_id

        if epoch != self.mirror.session_epoch:
            # The mirror now holds a fresher server snapshot.
            if ok:
                toggle.commit()
            else:
                toggle.rollback(None, toggle.previous)
                if self.mirror.is_authenticated:
                    self.mirror.notify("error", error)
            return

        if ok:
            self._confirmed[listing_id] = toggle.desired

        if self._latest.get(listing_id) is not toggle:
            # Superseded; the newer toggle reconciles the mirror.
            if ok:
                toggle.commit()
            else:
                toggle.rollback(None, self._confirmed[listing_id])
            return

        del self._latest[listing_id]
        if ok:
            toggle.commit(self.mirror)
            self.mirror.notify("success", "Added to wishlist" if toggle.desired else "Removed from wishlist")
        else:
            toggle.rollback(self.mirror, self._confirmed[listing_id])
            self.mirror.notify("error", error)

    def _release(self, listing_id: str) -> None:
        remaining = self._pending[listing_id] - 1
        if remaining:
            self._pending[listing_id] = remaining
            return
        del self._pending[listing_id]
        self._locks.pop(listing_id, None)
        self._confirmed.pop(listing_id, None)
        self._latest.pop(listing_id, None)

    async def _send(self, listing_id: str, liked: bool) -> Tuple[bool, str]:
        try:
            if liked:
                result = await self.api.add_to_wishlist(listing_id)
            else:
                result = await self.api.remove_from_wishlist(listing_id)
        except httpx.HTTPError as e:
            logger.error(f"Wishlist request failed for {listing_id}: {type(e).__name__}: {e}")
            return False, GENERIC_FAILURE_MESSAGE

        if result.success:
            return True, ""
        action = "add to" if liked else "remove from"
        return False, result.error or f"Failed to {action} wishlist"
