from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Boolean, Index, JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
import uuid

from . import Base
from tourillo.utils.logger import utcnow


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in local runs and tests).
JsonList = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    email_verified = Column(DateTime, nullable=True)
    image = Column(Text, nullable=True)

    # Capability flags; not mutually exclusive (an agent may also be an admin).
    is_admin = Column(Boolean, nullable=False, default=False)
    is_agent = Column(Boolean, nullable=False, default=False)
    # Soft-activation flag; inactive users never hold a usable session.
    is_active = Column(Boolean, nullable=False, default=True)

    # Listing ids the user has liked, kept de-duplicated in insertion order.
    wishlist_ids = Column(JsonList, nullable=False, default=lambda: [])

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    sessions = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    accounts = relationship(
        "Account",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('idx_user_is_admin', 'is_admin'),
        Index('idx_user_is_agent', 'is_agent'),
    )

    def __repr__(self) -> str:
        return f"<User {self.email} admin={self.is_admin} agent={self.is_agent} active={self.is_active}>"


class UserSession(Base):
    """Server-side login session referenced by an opaque cookie token."""

    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_token = Column(String(255), unique=True, nullable=False, index=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    # Last time the expiry was slid forward; drives the once-per-day renewal.
    refreshed_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index('idx_session_user_expires', 'user_id', 'expires_at'),
    )


class Account(Base):
    """External identity (Google) linked to a user.

    OAuth tokens are stored encrypted; the properties below expose plain text.
    """

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False, default="oidc")
    provider = Column(String(50), nullable=False)
    provider_account_id = Column(String(255), nullable=False)

    _access_token = Column("access_token", Text, nullable=True)
    _refresh_token = Column("refresh_token", Text, nullable=True)
    _id_token = Column("id_token", Text, nullable=True)
    expires_at = Column(Integer, nullable=True)  # epoch seconds, as issued by the provider
    token_type = Column(String(50), nullable=True)
    scope = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="accounts")

    __table_args__ = (
        UniqueConstraint('provider', 'provider_account_id', name='uq_account_provider_account'),
    )

    @property
    def access_token(self) -> str | None:
        from tourillo.utils import crypto

        return crypto.decrypt(self._access_token)

    @access_token.setter
    def access_token(self, value: str | None) -> None:
        from tourillo.utils import crypto

        self._access_token = crypto.encrypt(value) if value else None

    @property
    def refresh_token(self) -> str | None:
        from tourillo.utils import crypto

        return crypto.decrypt(self._refresh_token)

    @refresh_token.setter
    def refresh_token(self, value: str | None) -> None:
        from tourillo.utils import crypto

        self._refresh_token = crypto.encrypt(value) if value else None

    @property
    def id_token(self) -> str | None:
        from tourillo.utils import crypto

        return crypto.decrypt(self._id_token)

    @id_token.setter
    def id_token(self, value: str | None) -> None:
        from tourillo.utils import crypto

        self._id_token = crypto.encrypt(value) if value else None
