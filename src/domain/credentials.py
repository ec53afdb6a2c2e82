"""
Credential store - Password digests, verification and reset tokens.

Digests are bcrypt hashes. Comparison is bcrypt's own constant-time
check, never a string equality on digests.
"""

import logging
import uuid
from datetime import datetime

import bcrypt

from .exceptions import ValidationFailed
from .models import PasswordResetToken, User
from .ports import AccountRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt only accepts secrets up to 72 bytes
MAX_PASSWORD_BYTES = 72
BCRYPT_ROUNDS = 10

# Pre-computed hash used when no user matches, so that login always runs
# one bcrypt comparison regardless of whether the address exists.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()


def hash_password(secret: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash password using bcrypt with cost factor >= 10."""
    return bcrypt.hashpw(secret.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(candidate: str, password_digest: str | None) -> bool:
    """
    Check a candidate secret against a stored digest.

    A missing digest, or a candidate longer than any storable password, is
    compared against a dummy hash and always fails, keeping the response
    time independent of account existence.
    """
    secret = candidate.encode()
    if password_digest is None or len(secret) > MAX_PASSWORD_BYTES:
        bcrypt.checkpw(secret[:MAX_PASSWORD_BYTES], _DUMMY_BCRYPT_HASH.encode())
        return False
    return bcrypt.checkpw(secret, password_digest.encode())


def validate_new_password(secret: str, min_length: int = MIN_PASSWORD_LENGTH) -> None:
    """
    Raises:
        ValidationFailed: If the password is shorter than min_length or
            longer than MAX_PASSWORD_BYTES once UTF-8 encoded
    """
    if len(secret) < min_length:
        raise ValidationFailed(f"Password must be at least {min_length} characters")
    if len(secret.encode()) > MAX_PASSWORD_BYTES:
        raise ValidationFailed(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def change_password(
    repository: AccountRepository,
    user: User,
    new_secret: str,
    min_length: int = MIN_PASSWORD_LENGTH,
) -> None:
    """Validate and store a new password for the user."""
    validate_new_password(new_secret, min_length)
    digest = hash_password(new_secret)
    repository.update_password(user.id, digest)
    user.password_digest = digest
    logger.info("Password changed for user %s", user.id)


def issue_reset_token(
    repository: AccountRepository, user: User, now: datetime
) -> PasswordResetToken:
    """
    Create and persist a reset token bound to the user.

    Other outstanding tokens for the same user stay valid.
    """
    token = PasswordResetToken(id=uuid.uuid4(), user_id=user.id, created_at=now)
    repository.add_reset_token(token)
    logger.info("Password reset token %s issued for user %s", token.id, user.id)
    return token
