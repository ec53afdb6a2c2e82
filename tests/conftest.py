"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock
- An in-memory repository and mocked email sender
- An AccountService wired to them
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from src.adapters.repository.memory import InMemoryAccountRepository
from src.adapters.session.memory import RequestSession
from src.domain.accounts import AccountService

T0 = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class StubConfig:
    homepage_url: str = "https://accounts.example.com"
    from_email_address: str = "noreply@example.com"
    registration_expiration_hours: int = 48
    reset_expiration_hours: int = 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> StubConfig:
    return StubConfig()


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def sender() -> Mock:
    return Mock()


@pytest.fixture
def service(
    repository: InMemoryAccountRepository, sender: Mock, config: StubConfig, clock: FakeClock
) -> AccountService:
    return AccountService(repository=repository, email_sender=sender, config=config, clock=clock)


@pytest.fixture
def session() -> RequestSession:
    return RequestSession()
