"""
Password reset tokens - Validity window and redemption preconditions.

States: ISSUED -> CONSUMED (terminal), ISSUED -> EXPIRED (derived from time).
"""

from datetime import datetime, timedelta

from .exceptions import ResetTokenExpired, ValidationFailed
from .models import PasswordResetToken, User


def is_token_valid(token: PasswordResetToken, now: datetime, expiration_hours: int) -> bool:
    """Not used and created within expiration_hours of now."""
    return not token.used and now <= token.created_at + timedelta(hours=expiration_hours)


def check_redeemable(
    token: PasswordResetToken,
    expected_user: User | None,
    now: datetime,
    expiration_hours: int,
) -> None:
    """
    Raise unless token may be redeemed on behalf of expected_user.

    Raises:
        ResetTokenExpired: Token is used or past its window
        ValidationFailed: Token has no user, or belongs to someone else
    """
    if not is_token_valid(token, now, expiration_hours):
        raise ResetTokenExpired(str(token.id))
    if token.user_id is None:
        raise ValidationFailed("Reset token is not bound to a user")
    if expected_user is None or expected_user.id != token.user_id:
        raise ValidationFailed("Reset token does not match this email address")
