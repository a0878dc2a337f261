from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional


class UserRole(str, Enum):
    """Closed set of roles derived from the is_admin / is_agent flags."""

    GUEST = "guest"
    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"

    @classmethod
    def from_flags(cls, is_admin: bool, is_agent: bool) -> "UserRole":
        if is_admin:
            return cls.ADMIN
        if is_agent:
            return cls.AGENT
        return cls.USER


SessionErrorTag = Literal["user-not-found", "user-inactive", "database-error"]

# Message shown to the visitor before the forced sign-out, keyed by tag.
SESSION_ERROR_MESSAGES = {
    "user-not-found": "Your account has been deleted. Please contact support if this is an error.",
    "database-error": "There was a problem with your account. Please try signing in again.",
    "user-inactive": "Your account has been deactivated. Please contact support.",
}
DEFAULT_SESSION_ERROR_MESSAGE = "Authentication error occurred."


class SessionUser(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    is_admin: bool = False
    is_agent: bool = False
    wishlist_ids: List[str] = Field(default_factory=list)

    @property
    def role(self) -> UserRole:
        return UserRole.from_flags(self.is_admin, self.is_agent)


class SessionPayload(BaseModel):
    """What /auth/session returns and what page gates see.

    ``error`` is set when a cookie pointed at a session whose subject is no
    longer usable; ``user`` is then always None.
    """

    user: Optional[SessionUser] = None
    expires: Optional[datetime] = None
    error: Optional[SessionErrorTag] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.error is None

    @property
    def role(self) -> UserRole:
        if not self.is_authenticated:
            return UserRole.GUEST
        return self.user.role


class UserResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: EmailStr
    image: Optional[str] = None
    is_admin: bool
    is_agent: bool
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    session_count: int = 0


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    is_admin: Optional[bool] = None
    is_agent: Optional[bool] = None
    is_active: Optional[bool] = None


class UserStatusUpdate(BaseModel):
    is_active: bool


class WishlistResult(BaseModel):
    success: bool
    wishlist_ids: List[str] = Field(default_factory=list)
    error: Optional[str] = None
