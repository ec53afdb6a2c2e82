"""
Domain layer - Pure business logic with zero framework imports.

This package contains the account request and password reset lifecycle:
identity resolution, username uniqueness, credential handling and the
AccountService that orchestrates them. It defines its own port interfaces
for infrastructure abstraction, ensuring true hexagonal architecture
decoupling.
"""

from .accounts import AccountService
from .exceptions import (
    AccountError,
    DuplicateResource,
    RequestExpired,
    ResetTokenExpired,
    ValidationFailed,
)
from .models import PasswordResetToken, User, UserAccountRequest, UserEmailAddress
from .ports import (
    AccountConfig,
    AccountRepository,
    ConfirmResult,
    EmailSender,
    RequestState,
    RequestType,
    SessionContext,
)

__all__ = [
    "AccountConfig",
    "AccountError",
    "AccountRepository",
    "AccountService",
    "ConfirmResult",
    "DuplicateResource",
    "EmailSender",
    "PasswordResetToken",
    "RequestExpired",
    "RequestState",
    "RequestType",
    "ResetTokenExpired",
    "SessionContext",
    "User",
    "UserAccountRequest",
    "UserEmailAddress",
    "ValidationFailed",
]
