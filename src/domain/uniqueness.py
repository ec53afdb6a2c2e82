"""
Username uniqueness - Advisory availability check.

The check does not reserve the name. Two registrations racing for the
same username are settled by the unique index on users.username when
the second one is confirmed.
"""

from datetime import datetime

from .lifecycle import has_expired
from .ports import AccountRepository


def is_username_available(
    repository: AccountRepository,
    candidate: str,
    excluding_email: str,
    now: datetime,
    expiration_hours: int,
) -> bool:
    """
    Decide whether a username is free.

    A live request from another email holds the name, as does any
    persisted user. Comparison is exact and case-sensitive on the
    trimmed value.
    """
    username = candidate.strip()
    for request in repository.list_requests_for_username(username, excluding_email):
        if not has_expired(request, now, expiration_hours):
            return False
    return not repository.username_exists(username)
