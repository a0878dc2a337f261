import pytest
from sqlalchemy.exc import OperationalError

from tourillo.errors import DatabaseError, UserInactive
from tourillo.models.session import ValidSession
from tourillo.models_sqlalchemy.models import Account, User, UserSession
from tourillo.services import accounts
from tourillo.services.accounts import sign_in_with_google
from tourillo.services.google_oauth import GoogleProfile, GoogleTokens
from tourillo.services.session_manager import resolve_session


PROFILE = GoogleProfile(
    sub="google-42",
    email="maya@example.com",
    name="Maya",
    picture="https://lh3.googleusercontent.com/a/maya",
    email_verified=True,
)
TOKENS = GoogleTokens(access_token="ya29.access", refresh_token="1//refresh", id_token="id.jwt", expires_at=1700000000)


def test_first_sign_in_creates_a_plain_active_user(db):
    issued = sign_in_with_google(db, PROFILE, TOKENS)

    user = db.query(User).one()
    assert user.email == "maya@example.com"
    assert user.name == "Maya"
    assert user.is_admin is False
    assert user.is_agent is False
    assert user.is_active is True
    assert user.wishlist_ids == []
    assert user.email_verified is not None
    assert user.last_login_at is not None

    result = resolve_session(db, issued.token)
    assert isinstance(result, ValidSession)
    assert result.user.id == user.id


def test_repeat_sign_in_reuses_user_and_account(db):
    first = sign_in_with_google(db, PROFILE, TOKENS)
    second = sign_in_with_google(db, PROFILE, GoogleTokens(access_token="ya29.newer"))

    assert first.token != second.token
    assert db.query(User).count() == 1
    assert db.query(Account).count() == 1
    assert db.query(UserSession).count() == 2

    account = db.query(Account).one()
    assert account.access_token == "ya29.newer"
    # Google omits the refresh token on later consents; the stored one survives.
    assert account.refresh_token == "1//refresh"


def test_sign_in_links_existing_user_by_email(db, make_user):
    existing = make_user("Maya@Example.com", is_agent=True)

    sign_in_with_google(db, PROFILE, TOKENS)

    assert db.query(User).count() == 1
    account = db.query(Account).one()
    assert account.user_id == existing.id
    assert account.provider == "google"
    assert account.provider_account_id == "google-42"


def test_inactive_user_cannot_sign_in(db, make_user):
    make_user("maya@example.com", is_active=False)

    with pytest.raises(UserInactive):
        sign_in_with_google(db, PROFILE, TOKENS)

    assert db.query(UserSession).count() == 0
    assert db.query(Account).count() == 0


def test_provider_tokens_are_encrypted_at_rest(db):
    sign_in_with_google(db, PROFILE, TOKENS)

    account = db.query(Account).one()
    assert account._access_token.startswith("ENC:v1:")
    assert account._refresh_token.startswith("ENC:v1:")
    assert account.access_token == "ya29.access"
    assert account.id_token == "id.jwt"


def test_store_failure_rolls_back_the_whole_sign_in(db, monkeypatch):
    def failing_create_session(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(accounts, "create_session", failing_create_session)

    with pytest.raises(DatabaseError):
        sign_in_with_google(db, PROFILE, TOKENS)

    assert db.query(User).count() == 0
    assert db.query(Account).count() == 0
