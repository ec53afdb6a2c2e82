"""
Domain exceptions - Semantic error types for account management.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

Taxonomy:
- ValidationFailed: user-recoverable input problems, surfaced verbatim
- DuplicateResource: username or email already taken (also raised for
  unique-index violations at the persistence layer)
- RequestExpired / ResetTokenExpired: terminal, the user must start again
"""


class AccountError(Exception):
    """Base class for account domain errors."""

    pass


class ValidationFailed(AccountError):
    """Weak password, malformed email, bad username or mismatched identity."""

    pass


class DuplicateResource(ValidationFailed):
    """Username or email address is already taken."""

    pass


class RequestExpired(AccountError):
    """Account request is past its validity window."""

    pass


class ResetTokenExpired(AccountError):
    """Password reset token has expired or was already used."""

    pass
