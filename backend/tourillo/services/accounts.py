from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tourillo.errors import DatabaseError, UserInactive
from tourillo.models.session import IssuedSession
from tourillo.models_sqlalchemy.models import Account, User
from tourillo.services.google_oauth import GoogleProfile, GoogleTokens
from tourillo.services.session_manager import create_session
from tourillo.utils.logger import logger, utcnow

GOOGLE_PROVIDER = "google"


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def _store_tokens(account: Account, tokens: GoogleTokens) -> None:
    account.access_token = tokens.access_token
    # Google only returns a refresh token on the first consent; keep the old one.
    if tokens.refresh_token:
        account.refresh_token = tokens.refresh_token
    account.id_token = tokens.id_token
    account.expires_at = tokens.expires_at
    account.token_type = tokens.token_type
    account.scope = tokens.scope


def sign_in_with_google(
    db: Session,
    profile: GoogleProfile,
    tokens: GoogleTokens,
    *,
    now: Optional[datetime] = None,
) -> IssuedSession:
    """Find-or-create the user behind a Google profile and open a session.

    Inactive users are refused before anything is written. An existing user
    with the same email gets the Google account linked to it.
    """

    now = now or utcnow()

    try:
        account = (
            db.query(Account)
            .filter(
                Account.provider == GOOGLE_PROVIDER,
                Account.provider_account_id == profile.sub,
            )
            .first()
        )
        user = account.user if account is not None else get_user_by_email(db, profile.email)

        if user is not None and not user.is_active:
            logger.warning(f"Sign-in blocked for inactive user: {user.email}")
            raise UserInactive(user.id)

        if user is None:
            user = User(
                email=profile.email,
                name=profile.name,
                image=profile.picture,
                email_verified=now if profile.email_verified else None,
                is_admin=False,
                is_agent=False,
                is_active=True,
                wishlist_ids=[],
                created_at=now,
                updated_at=now,
            )
            db.add(user)
            db.flush()
            logger.info(f"New user created from Google sign-in: {user.email}")
        else:
            if not user.name and profile.name:
                user.name = profile.name
            if not user.image and profile.picture:
                user.image = profile.picture
            if profile.email_verified and user.email_verified is None:
                user.email_verified = now

        if account is None:
            account = Account(
                user_id=user.id,
                type="oidc",
                provider=GOOGLE_PROVIDER,
                provider_account_id=profile.sub,
            )
            db.add(account)
            logger.info(f"Linked Google account {profile.sub} to user {user.email}")
        _store_tokens(account, tokens)

        user.last_login_at = now
        issued = create_session(db, user.id, now=now, commit=False)
        db.commit()
    except SQLAlchemyError as e:
        logger.exception(f"Google sign-in failed for {profile.email}; rolling back")
        db.rollback()
        raise DatabaseError(str(e)) from e

    logger.info(f"User signed in with Google: {user.email}")
    return issued
