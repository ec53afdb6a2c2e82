"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

if TYPE_CHECKING:
    from .models import PasswordResetToken, User, UserAccountRequest, UserEmailAddress


class RequestType(str, Enum):
    """Kind of account request."""

    NEW_USER = "NEW_USER"
    NEW_EMAIL = "NEW_EMAIL"


class RequestState(str, Enum):
    """
    Account request lifecycle states.

    State Transitions (forward-only):
    - PENDING -> CONFIRMED (successful confirmation)
    - PENDING -> EXPIRED (registration window exceeded)

    EXPIRED is never stored: it is derived from created_at and the
    consumed flag at read time.
    """

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    EXPIRED = "EXPIRED"


class ConfirmResult(Enum):
    """
    Result of a confirmation attempt that did not raise.

    Expired requests raise RequestExpired instead.
    """

    CONFIRMED = "confirmed"
    EMAIL_MISMATCH = "email_mismatch"
    ALREADY_CONFIRMED = "already_confirmed"
    NOT_FOUND = "not_found"


class AccountConfig(Protocol):
    """Host-supplied configuration values the domain reads."""

    homepage_url: str
    from_email_address: str
    registration_expiration_hours: int
    reset_expiration_hours: int


class AccountRepository(Protocol):
    """
    Port interface for account persistence.

    Implementations must enforce unique indexes on User.username and
    UserEmailAddress.email, raising DuplicateResource on violation.
    """

    def get_user(self, user_id: UUID) -> "User | None":
        """Load a user with its email addresses, or None."""
        ...

    def username_exists(self, username: str) -> bool:
        """Return True if a persisted user has exactly this username."""
        ...

    def find_email_address(self, email: str) -> "UserEmailAddress | None":
        """Point lookup of an address by its normalized email."""
        ...

    def list_requests_for_username(
        self, username: str, excluding_email: str
    ) -> "list[UserAccountRequest]":
        """Requests with this username whose email differs from excluding_email."""
        ...

    def add_request(self, request: "UserAccountRequest") -> None:
        """Persist a new PENDING account request."""
        ...

    def get_request(self, request_id: UUID) -> "UserAccountRequest | None":
        """Load an account request, or None."""
        ...

    def confirm_new_user(
        self,
        request_id: UUID,
        user: "User",
        address: "UserEmailAddress",
        valid_since: datetime,
    ) -> bool:
        """
        Consume a NEW_USER request and create its user and first address.

        Performs a conditional transition (consumed FALSE -> TRUE, only if
        created_at >= valid_since) and the inserts in one atomic step.

        Returns:
            True if this call consumed the request, False if it was
            already consumed or created before valid_since

        Raises:
            DuplicateResource: username or email taken; nothing is changed
        """
        ...

    def confirm_new_email(
        self, request_id: UUID, address: "UserEmailAddress", valid_since: datetime
    ) -> bool:
        """
        Consume a NEW_EMAIL request and attach its address to the bound user.

        Same atomicity and return contract as confirm_new_user().
        """
        ...

    def update_password(self, user_id: UUID, password_digest: str) -> None:
        """Replace a user's password digest."""
        ...

    def delete_email_address(self, user_id: UUID, address_id: UUID) -> bool:
        """
        Delete an address owned by user_id unless it is the user's last one.

        Returns:
            True if deleted, False if the address is not owned by the user
            or is the only address left
        """
        ...

    def add_reset_token(self, token: "PasswordResetToken") -> None:
        """Persist a newly issued reset token."""
        ...

    def get_reset_token(self, token_id: UUID) -> "PasswordResetToken | None":
        """Load a reset token, or None."""
        ...

    def redeem_reset_token(
        self, token_id: UUID, password_digest: str, valid_since: datetime
    ) -> bool:
        """
        Mark a token used and apply the new password digest atomically.

        The token must be unused, bound to a user and issued at or after
        valid_since.

        Returns:
            True if this call flipped used FALSE -> TRUE, False otherwise
        """
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send(self, to: str, from_address: str, subject: str, body: str) -> None:
        """Deliver one message. May raise; callers treat delivery as best-effort."""
        ...


class SessionContext(Protocol):
    """Per-request holder of the authenticated identity."""

    def set_current_identity(self, user: "User | None") -> None:
        """Set (or clear with None) the authenticated user."""
        ...


class Clock(Protocol):
    """Source of the current time (timezone-aware UTC)."""

    def __call__(self) -> datetime: ...
