# src/timesync_client/session_data.py

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

ANONYMOUS_NAME = "Anonymous User"


class UserRecord(BaseModel):
    """
    A record from the PocketBase `users` collection.
    Unknown fields from the backend are kept so they can be passed through to callers.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    admin: bool = False
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.admin is True or self.role == "admin"

    @property
    def display_name(self) -> str:
        return self.name or self.username or self.email or "Unknown User"


class Session(BaseModel):
    """
    The single active identity of this client: the auth token plus the user it belongs to.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserRecord


class AuthPhase(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    LOGGING_IN = "logging_in"


class AuthState(BaseModel):
    model_config = ConfigDict(frozen=True)

    session: Optional[Session] = None
    phase: AuthPhase = AuthPhase.UNAUTHENTICATED
    error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def is_admin(self) -> bool:
        return self.session is not None and self.session.user.is_admin

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user.id if self.session else None

    @property
    def display_name(self) -> str:
        return self.session.user.display_name if self.session else ANONYMOUS_NAME
