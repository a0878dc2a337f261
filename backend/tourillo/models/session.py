from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from tourillo.models.user import SessionUser


class SessionErrorKind(str, Enum):
    NOT_FOUND = "not-found"
    USER_NOT_FOUND = "user-not-found"
    USER_INACTIVE = "user-inactive"
    DATABASE_ERROR = "database-error"

    @property
    def client_tag(self) -> Optional[str]:
        """Tag surfaced on the session payload; NOT_FOUND is reported as "no session"."""
        if self is SessionErrorKind.NOT_FOUND:
            return None
        return self.value


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class ValidSession:
    token: str
    user: SessionUser
    expires_at: datetime
    refreshed_at: datetime
    renewed: bool = False


@dataclass(frozen=True)
class InvalidSession:
    kind: SessionErrorKind


SessionResult = Union[ValidSession, InvalidSession]
