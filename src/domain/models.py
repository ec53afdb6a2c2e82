"""
Domain records - Plain data for users, addresses, requests and tokens.

Records carry no behavior. Lifecycle rules live in lifecycle.py and
credentials.py, and persistence goes through the AccountRepository port.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from .ports import RequestType


@dataclass
class UserEmailAddress:
    """An address owned by a user. The normalized email is globally unique."""

    id: UUID
    email: str
    user_id: UUID | None


@dataclass
class User:
    """
    Identity record.

    Invariant: a persisted user always owns at least one email address.
    """

    id: UUID
    username: str
    password_digest: str
    emails: list[UserEmailAddress] = field(default_factory=list)


@dataclass
class UserAccountRequest:
    """
    Single-use intent to create a user (NEW_USER) or add an address (NEW_EMAIL).

    NEW_EMAIL requests are bound to a user from creation; NEW_USER requests
    get their user_id only when confirmed.
    """

    id: UUID
    request_type: RequestType
    email: str
    request_ip: str
    created_at: datetime
    username: str | None = None
    password_digest: str | None = None
    user_id: UUID | None = None
    consumed: bool = False


@dataclass
class PasswordResetToken:
    """Single-use, time-limited authorization to change a user's password."""

    id: UUID
    user_id: UUID | None
    created_at: datetime
    used: bool = False
