"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository
from src.adapters.session.memory import RequestSession
from src.adapters.smtp.console import ConsoleEmailSender
from src.config.settings import Settings, get_settings
from src.domain.accounts import AccountService
from src.domain.models import User
from src.domain.ports import AccountRepository, EmailSender

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_repository(request: Request) -> AccountRepository:
    """Create repository with connection pool from app state."""
    pool = get_pool(request)
    return PostgresAccountRepository(pool)


def get_email_sender() -> EmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_account_service(
    repository: AccountRepository = Depends(get_repository),
    email_sender: EmailSender = Depends(get_email_sender),
    settings: Settings = Depends(get_settings),
) -> AccountService:
    """
    Create account service with injected dependencies.

    Wires together the repository, email sender and settings for the
    domain service.
    """
    return AccountService(
        repository=repository,
        email_sender=email_sender,
        config=settings,
        min_password_length=settings.min_password_length,
        min_username_length=settings.min_username_length,
    )


def get_session() -> RequestSession:
    """Fresh session per request; the identity is set by login only."""
    return RequestSession()


def get_request_ip(request: Request) -> str:
    """Originating network address of the request."""
    return request.client.host if request.client else "unknown"


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_basic_auth_credentials(
    credentials: HTTPBasicCredentials = Depends(http_basic),
) -> tuple[str, str]:
    """
    Extract and normalize credentials from HTTP BASIC AUTH header.

    FastAPI's HTTPBasic automatically:
    - Returns 401 for missing Authorization header
    - Returns 401 for malformed base64 encoding
    - Parses base64(email:password) format

    Args:
        credentials: HTTPBasicCredentials from FastAPI's HTTPBasic

    Returns:
        Tuple of (normalized_email, password)
        Email is stripped and lowercased for consistency.
    """
    email = credentials.username.strip().lower()
    password = credentials.password
    return email, password


def get_current_user(
    credentials: tuple[str, str] = Depends(get_basic_auth_credentials),
    service: AccountService = Depends(get_account_service),
    session: RequestSession = Depends(get_session),
) -> User:
    """
    Log the caller in from HTTP BASIC AUTH credentials.

    Raises:
        HTTPException: 401 if the email/password pair is not valid
    """
    email, password = credentials
    user = service.login(session, email, password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return user
