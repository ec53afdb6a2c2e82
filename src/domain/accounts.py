"""
Account service - Application layer for registration, addresses and passwords.

Orchestrates the pure domain functions (identity, uniqueness, lifecycle,
credentials, reset tokens) over the AccountRepository port and decides
which emails to send.

Conditional transitions
=======================

Confirming a request and redeeming a reset token are compare-and-set
operations performed by the repository (consumed/used FALSE -> TRUE,
only while the expiry window is still open).
The first caller to flip the flag wins; concurrent losers observe the
already-confirmed state and do nothing.

Email dispatch is best-effort: a failing EmailSender is logged and never
undoes a state transition.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from . import credentials, messages
from .credentials import (
    MIN_PASSWORD_LENGTH,
    hash_password,
    issue_reset_token,
    validate_new_password,
    verify_password,
)
from .exceptions import DuplicateResource, RequestExpired, ResetTokenExpired, ValidationFailed
from .identity import normalize_email, resolve_identity, validate_email_syntax
from .lifecycle import describe, has_expired, request_state, valid_since
from .models import PasswordResetToken, User, UserAccountRequest, UserEmailAddress
from .ports import (
    AccountConfig,
    AccountRepository,
    Clock,
    ConfirmResult,
    EmailSender,
    RequestState,
    RequestType,
    SessionContext,
)
from .reset_tokens import check_redeemable
from .uniqueness import is_username_available

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AccountService:
    """
    Domain service for account requests, addresses and passwords.

    All persistence goes through the repository; the current identity is
    only ever set through the SessionContext passed to login()/logout().
    """

    repository: AccountRepository
    email_sender: EmailSender
    config: AccountConfig
    clock: Clock = field(default=utcnow)
    min_password_length: int = MIN_PASSWORD_LENGTH
    min_username_length: int = MIN_USERNAME_LENGTH

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self, username: str, email: str, password: str, request_ip: str
    ) -> UserAccountRequest:
        """
        Create a PENDING NEW_USER request and send the confirmation email.

        Args:
            username: Requested username (will be trimmed)
            email: Address to confirm (will be normalized)
            password: Clear-text password (only its digest is stored)
            request_ip: Originating network address

        Returns:
            The persisted request

        Raises:
            ValidationFailed: Bad username, email or password
            DuplicateResource: Username or email already taken
        """
        username = username.strip()
        if len(username) < self.min_username_length:
            raise ValidationFailed(
                f"Username must be at least {self.min_username_length} characters"
            )
        normalized_email = validate_email_syntax(email)
        validate_new_password(password, self.min_password_length)

        if self.repository.find_email_address(normalized_email) is not None:
            raise DuplicateResource(f"Email address already registered: {normalized_email}")

        now = self.clock()
        if not is_username_available(
            self.repository,
            username,
            normalized_email,
            now,
            self.config.registration_expiration_hours,
        ):
            raise DuplicateResource(f"Username already taken: {username}")

        request = UserAccountRequest(
            id=uuid.uuid4(),
            request_type=RequestType.NEW_USER,
            email=normalized_email,
            request_ip=request_ip,
            created_at=now,
            username=username,
            password_digest=hash_password(password),
        )
        self.repository.add_request(request)
        logger.info("Registration request %s created for %s", request.id, normalized_email)

        self._dispatch(
            messages.registration_confirmation(
                request, self.config.homepage_url, self.config.registration_expiration_hours
            )
        )
        return request

    def confirm_registration(self, request_id: UUID, email: str) -> ConfirmResult:
        """
        Confirm a NEW_USER request by re-entering its email address.

        A non-matching email is a silent no-op: the request stays PENDING
        and may be retried.

        Returns:
            CONFIRMED when this call created the user, EMAIL_MISMATCH,
            ALREADY_CONFIRMED, or NOT_FOUND

        Raises:
            RequestExpired: Registration window has passed
            DuplicateResource: Username or email was taken meanwhile
        """
        request = self.repository.get_request(request_id)
        if request is None or request.request_type != RequestType.NEW_USER:
            return ConfirmResult.NOT_FOUND
        if request.consumed:
            return ConfirmResult.ALREADY_CONFIRMED
        hours = self.config.registration_expiration_hours
        if has_expired(request, self.clock(), hours):
            raise RequestExpired(str(request.id))

        if normalize_email(email) != request.email:
            logger.info("Registration request %s: confirmation email mismatch", request.id)
            return ConfirmResult.EMAIL_MISMATCH

        user = User(
            id=uuid.uuid4(),
            username=request.username,
            password_digest=request.password_digest,
        )
        address = UserEmailAddress(id=uuid.uuid4(), email=request.email, user_id=user.id)
        if not self.repository.confirm_new_user(
            request.id, user, address, valid_since(self.clock(), hours)
        ):
            return self._lost_confirmation(request.id)

        logger.info("Registration request %s confirmed: user %s created", request.id, user.id)
        return ConfirmResult.CONFIRMED

    # ------------------------------------------------------------------
    # Email addresses
    # ------------------------------------------------------------------

    def add_email(self, user_id: UUID, new_email: str, request_ip: str) -> UserAccountRequest:
        """
        Create a NEW_EMAIL request bound to the user and send its confirmation.

        Raises:
            ValidationFailed: Unknown user or malformed email
            DuplicateResource: Address already registered
        """
        user = self._require_user(user_id)
        normalized_email = validate_email_syntax(new_email)
        if self.repository.find_email_address(normalized_email) is not None:
            raise DuplicateResource(f"Email address already registered: {normalized_email}")

        request = UserAccountRequest(
            id=uuid.uuid4(),
            request_type=RequestType.NEW_EMAIL,
            email=normalized_email,
            request_ip=request_ip,
            created_at=self.clock(),
            user_id=user.id,
        )
        self.repository.add_request(request)
        logger.info("Email addition request %s created for user %s", request.id, user.id)

        self._dispatch(
            messages.new_email_confirmation(
                request, self.config.homepage_url, self.config.registration_expiration_hours
            )
        )
        return request

    def confirm_email_addition(self, request_id: UUID) -> ConfirmResult:
        """
        Confirm a NEW_EMAIL request. Opening the link is the confirmation.

        Raises:
            RequestExpired: Registration window has passed
            DuplicateResource: Address was registered meanwhile
        """
        request = self.repository.get_request(request_id)
        if request is None or request.request_type != RequestType.NEW_EMAIL:
            return ConfirmResult.NOT_FOUND
        if request.consumed:
            return ConfirmResult.ALREADY_CONFIRMED
        hours = self.config.registration_expiration_hours
        if has_expired(request, self.clock(), hours):
            raise RequestExpired(str(request.id))
        if request.user_id is None:
            raise ValidationFailed("Email addition request is not bound to a user")

        address = UserEmailAddress(id=uuid.uuid4(), email=request.email, user_id=request.user_id)
        if not self.repository.confirm_new_email(
            request.id, address, valid_since(self.clock(), hours)
        ):
            return self._lost_confirmation(request.id)

        logger.info("Email %s added to user %s", request.email, request.user_id)
        return ConfirmResult.CONFIRMED

    def remove_email(self, user_id: UUID, address_id: UUID) -> None:
        """
        Remove one of the user's addresses.

        Raises:
            ValidationFailed: Unknown user, address not owned by the user,
                or address is the user's last one
        """
        user = self._require_user(user_id)
        if address_id not in {address.id for address in user.emails}:
            raise ValidationFailed("Email address does not belong to this account")
        if len(user.emails) <= 1 or not self.repository.delete_email_address(
            user.id, address_id
        ):
            logger.warning("Refused to remove last email address of user %s", user.id)
            raise ValidationFailed("Cannot remove the only email address of an account")
        logger.info("Email address %s removed from user %s", address_id, user.id)

    def request_status(self, request_id: UUID) -> tuple[str, RequestState] | None:
        """Label and derived state of a request, or None if unknown."""
        request = self.repository.get_request(request_id)
        if request is None:
            return None
        state = request_state(
            request, self.clock(), self.config.registration_expiration_hours
        )
        return describe(request), state

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    def change_password(self, user_id: UUID, old_password: str, new_password: str) -> None:
        """
        Raises:
            ValidationFailed: Unknown user, wrong current password or weak
                new password
        """
        user = self._require_user(user_id)
        if not verify_password(old_password, user.password_digest):
            raise ValidationFailed("Current password is incorrect")
        credentials.change_password(self.repository, user, new_password, self.min_password_length)

    def request_password_reset(self, email: str, request_ip: str) -> PasswordResetToken | None:
        """
        Issue a reset token for the address's owner and email the link.

        Unknown addresses are logged and return None, never an error.
        """
        user = resolve_identity(self.repository, email)
        if user is None:
            logger.warning("Password reset requested for unknown address from %s", request_ip)
            return None

        token = issue_reset_token(self.repository, user, self.clock())
        self._dispatch(
            messages.password_reset(
                token,
                normalize_email(email),
                request_ip,
                self.config.homepage_url,
                self.config.reset_expiration_hours,
            )
        )
        return token

    def reset_password(self, token_id: UUID, email: str, new_password: str) -> None:
        """
        Redeem a reset token and set a new password.

        Raises:
            ResetTokenExpired: Token used or past its window
            ValidationFailed: Unknown token, token not bound to the owner of
                email, or weak password
        """
        token = self.repository.get_reset_token(token_id)
        if token is None:
            raise ValidationFailed("Unknown password reset token")

        expected_user = resolve_identity(self.repository, email)
        hours = self.config.reset_expiration_hours
        check_redeemable(token, expected_user, self.clock(), hours)
        validate_new_password(new_password, self.min_password_length)

        digest = hash_password(new_password)
        if not self.repository.redeem_reset_token(
            token.id, digest, valid_since(self.clock(), hours)
        ):
            raise ResetTokenExpired(str(token.id))
        logger.info("Password reset token %s redeemed for user %s", token.id, token.user_id)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, session: SessionContext, email: str, password: str) -> User | None:
        """
        Authenticate by any owned address and set the session identity.

        Returns:
            The authenticated user, or None on failure (identity cleared)
        """
        user = resolve_identity(self.repository, email)
        digest = user.password_digest if user is not None else None
        if user is None or not verify_password(password, digest):
            session.set_current_identity(None)
            logger.info("Login failed for %s", normalize_email(email))
            return None

        session.set_current_identity(user)
        logger.info("User %s logged in", user.id)
        return user

    def logout(self, session: SessionContext) -> None:
        session.set_current_identity(None)

    # ------------------------------------------------------------------

    def _lost_confirmation(self, request_id: UUID) -> ConfirmResult:
        """Outcome for a request whose conditional transition did not apply."""
        request = self.repository.get_request(request_id)
        if request is not None and request.consumed:
            return ConfirmResult.ALREADY_CONFIRMED
        raise RequestExpired(str(request_id))

    def _require_user(self, user_id: UUID) -> User:
        user = self.repository.get_user(user_id)
        if user is None:
            raise ValidationFailed("Unknown user")
        return user

    def _dispatch(self, message: messages.OutgoingEmail) -> None:
        try:
            self.email_sender.send(
                message.to, self.config.from_email_address, message.subject, message.body
            )
        except Exception:
            logger.exception("Failed to send '%s' to %s", message.subject, message.to)
