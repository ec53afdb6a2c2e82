"""
Outgoing email composition.

The domain decides that a message is sent and what it says; delivery is
the EmailSender adapter's concern.
"""

from dataclasses import dataclass

from .models import PasswordResetToken, UserAccountRequest


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    body: str


def _link(homepage_url: str, path: str) -> str:
    return f"{homepage_url.rstrip('/')}{path}"


def registration_confirmation(
    request: UserAccountRequest, homepage_url: str, expiration_hours: int
) -> OutgoingEmail:
    link = _link(homepage_url, f"/v1/requests/{request.id}/confirm-registration")
    body = (
        f"Someone (hopefully you) at {request.request_ip} asked to create the account "
        f"'{request.username}' with this email address.\n\n"
        f"To finish registration, confirm your email address at:\n{link}\n\n"
        f"This link expires in {expiration_hours} hours. Request id: {request.id}\n"
    )
    return OutgoingEmail(to=request.email, subject="Confirm your new account", body=body)


def new_email_confirmation(
    request: UserAccountRequest, homepage_url: str, expiration_hours: int
) -> OutgoingEmail:
    link = _link(homepage_url, f"/v1/requests/{request.id}/confirm-email")
    body = (
        f"A request from {request.request_ip} asked to add this address to an existing "
        f"account.\n\n"
        f"To confirm, open:\n{link}\n\n"
        f"This link expires in {expiration_hours} hours. Request id: {request.id}\n"
    )
    return OutgoingEmail(to=request.email, subject="Confirm your email address", body=body)


def password_reset(
    token: PasswordResetToken,
    email: str,
    request_ip: str,
    homepage_url: str,
    expiration_hours: int,
) -> OutgoingEmail:
    link = _link(homepage_url, f"/v1/password-resets/{token.id}")
    body = (
        f"A password reset was requested from {request_ip} for the account "
        f"using this address.\n\n"
        f"To choose a new password, use:\n{link}\n\n"
        f"This link can be used once and expires in {expiration_hours} hour(s). "
        f"If you did not ask for this, ignore this email. Token id: {token.id}\n"
    )
    return OutgoingEmail(to=email, subject="Reset your password", body=body)
