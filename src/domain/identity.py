"""
Identity resolution - Email normalization and user lookup by address.
"""

from email_validator import EmailNotValidError, validate_email

from .exceptions import ValidationFailed
from .models import User
from .ports import AccountRepository


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase. Idempotent.
    """
    return email.strip().lower()


def validate_email_syntax(email: str) -> str:
    """
    Normalize an address and reject it if it is malformed.

    Deliverability (DNS) is not checked.

    Raises:
        ValidationFailed: If the address is not a syntactically valid email
    """
    normalized = normalize_email(email)
    try:
        validate_email(normalized, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationFailed(f"Invalid email address: {e}") from None
    return normalized


def resolve_identity(repository: AccountRepository, email: str) -> User | None:
    """Return the user owning this address, or None if nobody does."""
    address = repository.find_email_address(normalize_email(email))
    if address is None or address.user_id is None:
        return None
    return repository.get_user(address.user_id)
