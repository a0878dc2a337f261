import asyncio

import httpx
import pytest

from tourillo.client.mirror import AuthMirror, AuthStatus
from tourillo.models.user import SessionPayload, SessionUser


class Recorder:
    def __init__(self):
        self.notifications = []
        self.navigations = []

    def notify(self, level, message):
        self.notifications.append((level, message))

    def navigate(self, path):
        self.navigations.append(path)


@pytest.fixture
def ui():
    return Recorder()


@pytest.fixture
def mirror(ui):
    return AuthMirror(notify=ui.notify, navigate=ui.navigate)


def _signed_in(wishlist_ids=()):
    return SessionPayload(user=SessionUser(id="u1", email="u1@example.com", wishlist_ids=list(wishlist_ids)))


def test_loading_state_is_neutral(mirror):
    assert mirror.status is AuthStatus.LOADING
    assert mirror.is_authenticated is False
    assert mirror.is_unauthenticated is False
    assert mirror.is_liked("pkg-1") is None


def test_signed_in_payload_populates_the_mirror(mirror):
    assert mirror.apply_session(_signed_in(["pkg-1"]), mirror.begin_check()) is True

    assert mirror.is_authenticated is True
    assert mirror.is_liked("pkg-1") is True
    assert mirror.is_liked("pkg-2") is False


def test_empty_payload_means_signed_out(mirror, ui):
    mirror.apply_session(SessionPayload(), mirror.begin_check())

    assert mirror.is_unauthenticated is True
    assert mirror.is_liked("pkg-1") is False
    assert ui.navigations == []


def test_stale_session_result_is_ignored(mirror):
    slow = mirror.begin_check()
    fast = mirror.begin_check()

    mirror.apply_session(SessionPayload(), fast)
    applied = mirror.apply_session(_signed_in(), slow)

    assert applied is False
    assert mirror.is_unauthenticated is True


@pytest.mark.parametrize(
    "tag, message",
    [
        ("user-inactive", "Your account has been deactivated. Please contact support."),
        ("user-not-found", "Your account has been deleted. Please contact support if this is an error."),
        ("database-error", "There was a problem with your account. Please try signing in again."),
    ],
)
def test_error_tag_clears_notifies_and_sends_to_login(mirror, ui, tag, message):
    mirror.apply_session(_signed_in(), mirror.begin_check())

    mirror.apply_session(SessionPayload(error=tag), mirror.begin_check())

    assert mirror.user is None
    assert mirror.is_unauthenticated is True
    assert ui.notifications == [("error", message)]
    assert ui.navigations == ["/login"]


def test_teardown_drops_in_flight_checks(mirror):
    mirror.apply_session(_signed_in(), mirror.begin_check())
    pending = mirror.begin_check()

    mirror.teardown()

    assert mirror.apply_session(_signed_in(), pending) is False
    assert mirror.is_unauthenticated is True


def test_set_liked_keeps_ids_unique(mirror):
    mirror.apply_session(_signed_in(["pkg-1"]), mirror.begin_check())

    mirror.set_liked("pkg-1", True)
    mirror.set_liked("pkg-2", True)
    mirror.set_liked("pkg-1", False)

    assert mirror.user.wishlist_ids == ["pkg-2"]


def test_mirror_copy_is_independent_of_payload(mirror):
    payload = _signed_in(["pkg-1"])
    mirror.apply_session(payload, mirror.begin_check())

    mirror.set_liked("pkg-2", True)

    assert payload.user.wishlist_ids == ["pkg-1"]


class FakeSessionApi:
    def __init__(self, payloads):
        self.payloads = list(payloads)
        self.signed_out = False

    async def fetch_session(self):
        await asyncio.sleep(0)
        payload = self.payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload

    async def sign_out(self):
        self.signed_out = True


def test_refresh_applies_the_server_answer(mirror):
    api = FakeSessionApi([_signed_in(["pkg-3"])])

    assert asyncio.run(mirror.refresh(api)) is True
    assert mirror.is_liked("pkg-3") is True


def test_refresh_failure_during_loading_settles_as_signed_out(mirror):
    api = FakeSessionApi([httpx.ConnectError("offline")])

    with pytest.raises(httpx.ConnectError):
        asyncio.run(mirror.refresh(api))

    assert mirror.is_unauthenticated is True


def test_overlapping_refreshes_keep_the_newest(mirror):
    api = FakeSessionApi([_signed_in(["old"]), SessionPayload()])

    async def run():
        return await asyncio.gather(mirror.refresh(api), mirror.refresh(api))

    first, second = asyncio.run(run())

    assert (first, second) == (False, True)
    assert mirror.is_unauthenticated is True


def test_sign_out_tears_down(mirror, ui):
    api = FakeSessionApi([])
    mirror.apply_session(_signed_in(), mirror.begin_check())

    asyncio.run(mirror.sign_out(api))

    assert api.signed_out is True
    assert mirror.user is None
    assert ui.navigations == ["/login"]


@pytest.mark.parametrize("tag", ["user-inactive", "user-not-found", "database-error"])
def test_refresh_with_error_tag_signs_out_on_the_server(mirror, ui, tag):
    mirror.apply_session(_signed_in(), mirror.begin_check())
    api = FakeSessionApi([SessionPayload(error=tag)])

    assert asyncio.run(mirror.refresh(api)) is True

    assert api.signed_out is True
    assert mirror.is_unauthenticated is True
    assert ui.navigations == ["/login"]


def test_refresh_without_error_does_not_sign_out(mirror):
    api = FakeSessionApi([SessionPayload()])

    asyncio.run(mirror.refresh(api))

    assert api.signed_out is False
    assert mirror.is_unauthenticated is True


def test_forced_sign_out_failure_still_leaves_mirror_signed_out(mirror, ui):
    class BrokenSignOutApi(FakeSessionApi):
        async def sign_out(self):
            raise httpx.ConnectError("offline")

    api = BrokenSignOutApi([SessionPayload(error="database-error")])

    assert asyncio.run(mirror.refresh(api)) is True

    assert mirror.user is None
    assert mirror.is_unauthenticated is True
    assert ui.navigations == ["/login"]


def test_session_epoch_moves_on_apply_and_teardown(mirror):
    start = mirror.session_epoch
    stale = mirror.begin_check()
    mirror.apply_session(_signed_in(), mirror.begin_check())
    mirror.apply_session(_signed_in(), stale)

    assert mirror.session_epoch == start + 1

    mirror.teardown()

    assert mirror.session_epoch == start + 2
