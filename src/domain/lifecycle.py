"""
Account request lifecycle - Expiry and state derivation.

Account Request State Machine (Forward-Only Transitions)
========================================================

States:
- PENDING: Request created, waiting for confirmation
- CONFIRMED: Terminal state after successful confirmation (consumed=True)
- EXPIRED: Registration window exceeded without confirmation

Valid Transitions:
    PENDING -> CONFIRMED   (conditional transition at the repository)
    PENDING -> EXPIRED     (time passes; never written)

Expiry is a pure function of time and the consumed flag. Once a request
has expired it stays expired: consumed is never reset and time only
moves forward.
"""

from datetime import datetime, timedelta

from .models import UserAccountRequest
from .ports import RequestState, RequestType

_DESCRIPTIONS = {
    RequestType.NEW_USER: "New account registration",
    RequestType.NEW_EMAIL: "Add email address to account",
}


def expires_at(request: UserAccountRequest, expiration_hours: int) -> datetime:
    return request.created_at + timedelta(hours=expiration_hours)


def has_expired(request: UserAccountRequest, now: datetime, expiration_hours: int) -> bool:
    """True if the request was consumed or its window has passed."""
    return request.consumed or now > expires_at(request, expiration_hours)


def valid_since(now: datetime, expiration_hours: int) -> datetime:
    """Earliest creation time still inside the window at `now`."""
    return now - timedelta(hours=expiration_hours)


def request_state(
    request: UserAccountRequest, now: datetime, expiration_hours: int
) -> RequestState:
    if request.consumed:
        return RequestState.CONFIRMED
    if has_expired(request, now, expiration_hours):
        return RequestState.EXPIRED
    return RequestState.PENDING


def describe(request: UserAccountRequest) -> str:
    """Human label for the request type."""
    return _DESCRIPTIONS[request.request_type]
