"""
Shared fixtures for adversarial tests.

Every scenario runs against both repository adapters. The PostgreSQL
variant is skipped when the configured database is not reachable.
"""

from collections.abc import Generator
from unittest.mock import Mock

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryAccountRepository
from src.adapters.repository.postgres import PostgresAccountRepository, run_migrations
from src.config.settings import get_settings
from src.domain.accounts import AccountService
from src.domain.ports import AccountRepository


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for adversarial tests."""
    settings = get_settings()
    try:
        psycopg.connect(settings.database_url, connect_timeout=2).close()
    except psycopg.OperationalError:
        pytest.skip("PostgreSQL is not available")
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


def clean_database(pool: ConnectionPool) -> None:
    with pool.connection() as conn:
        conn.execute("DELETE FROM password_reset_tokens")
        conn.execute("DELETE FROM account_requests")
        conn.execute("DELETE FROM user_emails")
        conn.execute("DELETE FROM users")
        conn.commit()


@pytest.fixture(params=["memory", "postgres"])
def repository(request: pytest.FixtureRequest) -> AccountRepository:
    """Repository under attack, one run per adapter."""
    if request.param == "memory":
        return InMemoryAccountRepository()
    pool = request.getfixturevalue("pool")
    clean_database(pool)
    return PostgresAccountRepository(pool)


@pytest.fixture
def service(repository: AccountRepository, config, clock) -> AccountService:
    return AccountService(repository=repository, email_sender=Mock(), config=config, clock=clock)
