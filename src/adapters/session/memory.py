"""
Request session adapter - Implements SessionContext protocol.

Holds the authenticated identity for the lifetime of one request.
Cookie and token mechanics are left to the host application.
"""

from src.domain.models import User


class RequestSession:
    """Per-request holder of the current identity."""

    def __init__(self) -> None:
        self.current_identity: User | None = None

    def set_current_identity(self, user: User | None) -> None:
        self.current_identity = user

    @property
    def is_authenticated(self) -> bool:
        return self.current_identity is not None
