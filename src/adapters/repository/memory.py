"""
In-memory repository adapter - Implements AccountRepository protocol.

Keeps all records in dictionaries behind a single lock. Conditional
transitions and unique-index checks happen while the lock is held, so
the adapter gives the same exactly-once guarantees as the PostgreSQL one
within a single process. Records are copied on the way in and out.
"""

import copy
import threading
from datetime import datetime
from uuid import UUID

from src.domain.exceptions import DuplicateResource
from src.domain.models import PasswordResetToken, User, UserAccountRequest, UserEmailAddress


class InMemoryAccountRepository:
    """
    Implements AccountRepository protocol with process-local storage.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[UUID, User] = {}
        self._addresses: dict[UUID, UserEmailAddress] = {}
        self._requests: dict[UUID, UserAccountRequest] = {}
        self._tokens: dict[UUID, PasswordResetToken] = {}

    def get_user(self, user_id: UUID) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            loaded = copy.copy(user)
            loaded.emails = [
                copy.copy(a) for a in self._addresses.values() if a.user_id == user_id
            ]
            return loaded

    def username_exists(self, username: str) -> bool:
        with self._lock:
            return any(u.username == username for u in self._users.values())

    def find_email_address(self, email: str) -> UserEmailAddress | None:
        with self._lock:
            for address in self._addresses.values():
                if address.email == email:
                    return copy.copy(address)
            return None

    def list_requests_for_username(
        self, username: str, excluding_email: str
    ) -> list[UserAccountRequest]:
        with self._lock:
            return [
                copy.copy(r)
                for r in self._requests.values()
                if r.username == username and r.email != excluding_email
            ]

    def add_request(self, request: UserAccountRequest) -> None:
        with self._lock:
            self._requests[request.id] = copy.copy(request)

    def get_request(self, request_id: UUID) -> UserAccountRequest | None:
        with self._lock:
            request = self._requests.get(request_id)
            return copy.copy(request) if request is not None else None

    def confirm_new_user(
        self,
        request_id: UUID,
        user: User,
        address: UserEmailAddress,
        valid_since: datetime,
    ) -> bool:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None or request.consumed or request.created_at < valid_since:
                return False
            if any(u.username == user.username for u in self._users.values()):
                raise DuplicateResource(f"Username already taken: {user.username}")
            self._check_email_free(address.email)

            request.consumed = True
            request.user_id = user.id
            stored = copy.copy(user)
            stored.emails = []
            self._users[user.id] = stored
            self._addresses[address.id] = copy.copy(address)
            return True

    def confirm_new_email(
        self, request_id: UUID, address: UserEmailAddress, valid_since: datetime
    ) -> bool:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None or request.consumed or request.created_at < valid_since:
                return False
            self._check_email_free(address.email)

            request.consumed = True
            self._addresses[address.id] = copy.copy(address)
            return True

    def update_password(self, user_id: UUID, password_digest: str) -> None:
        with self._lock:
            self._users[user_id].password_digest = password_digest

    def delete_email_address(self, user_id: UUID, address_id: UUID) -> bool:
        with self._lock:
            owned = [a for a in self._addresses.values() if a.user_id == user_id]
            if len(owned) <= 1 or address_id not in {a.id for a in owned}:
                return False
            del self._addresses[address_id]
            return True

    def add_reset_token(self, token: PasswordResetToken) -> None:
        with self._lock:
            self._tokens[token.id] = copy.copy(token)

    def get_reset_token(self, token_id: UUID) -> PasswordResetToken | None:
        with self._lock:
            token = self._tokens.get(token_id)
            return copy.copy(token) if token is not None else None

    def redeem_reset_token(
        self, token_id: UUID, password_digest: str, valid_since: datetime
    ) -> bool:
        with self._lock:
            token = self._tokens.get(token_id)
            if token is None or token.used or token.user_id not in self._users:
                return False
            if token.created_at < valid_since:
                return False
            token.used = True
            self._users[token.user_id].password_digest = password_digest
            return True

    def _check_email_free(self, email: str) -> None:
        # Caller holds the lock.
        if any(a.email == email for a in self._addresses.values()):
            raise DuplicateResource(f"Email address already registered: {email}")
