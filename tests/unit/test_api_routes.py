"""
Unit tests for API v1 routes.

Tests endpoint responses with mocked dependencies.
"""

import uuid
from base64 import b64encode
from collections.abc import Generator
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.dependencies import get_account_service, get_current_user
from src.api.v1.routes import router
from src.domain.accounts import AccountService
from src.domain.exceptions import (
    DuplicateResource,
    RequestExpired,
    ResetTokenExpired,
    ValidationFailed,
)
from src.domain.models import User, UserAccountRequest, UserEmailAddress
from src.domain.ports import ConfirmResult, RequestState, RequestType


def basic_auth_header(email: str, password: str) -> dict:
    """Create HTTP BASIC AUTH header for testing."""
    credentials = f"{email}:{password}"
    encoded = b64encode(credentials.encode()).decode()
    return {"Authorization": f"Basic {encoded}"}


def make_user() -> User:
    user_id = uuid.uuid4()
    return User(
        id=user_id,
        username="alice",
        password_digest="$2b$10$digest",
        emails=[UserEmailAddress(id=uuid.uuid4(), email="alice@example.com", user_id=user_id)],
    )


@pytest.fixture
def app() -> FastAPI:
    """Create test FastAPI application."""
    test_app = FastAPI()
    test_app.include_router(router, prefix="/v1")
    test_app.state.pool = MagicMock()
    return test_app


@pytest.fixture
def mock_service(app: FastAPI) -> Generator[MagicMock, None, None]:
    service = MagicMock(spec=AccountService)
    app.dependency_overrides[get_account_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


@pytest.fixture
def user(app: FastAPI, mock_service: MagicMock) -> User:
    """Authenticated user for /me endpoints."""
    current = make_user()
    app.dependency_overrides[get_current_user] = lambda: current
    return current


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


class TestRegisterEndpoint:
    """Tests for POST /v1/register endpoint."""

    payload = {
        "username": "alice",
        "email": "alice@example.com",
        "password": "secret1",
        "password_confirmation": "secret1",
    }

    def test_register_success_returns_201(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        request_id = uuid.uuid4()
        mock_service.register.return_value = UserAccountRequest(
            id=request_id,
            request_type=RequestType.NEW_USER,
            email="alice@example.com",
            request_ip="testclient",
            created_at=datetime.now(timezone.utc),
            username="alice",
            password_digest="$2b$10$digest",
        )

        response = client.post("/v1/register", json=self.payload)

        assert response.status_code == 201
        assert response.json() == {
            "message": "Confirmation email sent",
            "request_id": str(request_id),
            "email": "alice@example.com",
            "expires_in_hours": 48,
        }
        mock_service.register.assert_called_once_with(
            "alice", "alice@example.com", "secret1", "testclient"
        )

    def test_register_duplicate_returns_409(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.register.side_effect = DuplicateResource("Username already taken: alice")

        response = client.post("/v1/register", json=self.payload)

        assert response.status_code == 409
        assert response.json() == {"detail": "Username already taken: alice"}

    def test_register_validation_failure_returns_400(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.register.side_effect = ValidationFailed("Username must be at least 5 characters")

        response = client.post("/v1/register", json={**self.payload, "username": "abc"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Username must be at least 5 characters"

    def test_register_password_mismatch_returns_422(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        response = client.post(
            "/v1/register", json={**self.payload, "password_confirmation": "other1"}
        )

        assert response.status_code == 422
        mock_service.register.assert_not_called()

    def test_register_validates_email(self, client: TestClient, mock_service: MagicMock) -> None:
        response = client.post("/v1/register", json={**self.payload, "email": "invalid-email"})
        assert response.status_code == 422


class TestConfirmEndpoints:
    """Tests for the confirmation endpoints."""

    def test_confirm_registration_success(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        request_id = uuid.uuid4()
        mock_service.confirm_registration.return_value = ConfirmResult.CONFIRMED

        response = client.post(
            f"/v1/requests/{request_id}/confirm-registration", json={"email": "alice@example.com"}
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Request confirmed", "confirmed": True}
        mock_service.confirm_registration.assert_called_once_with(request_id, "alice@example.com")

    def test_confirm_registration_mismatch_is_not_an_error(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.confirm_registration.return_value = ConfirmResult.EMAIL_MISMATCH

        response = client.post(
            f"/v1/requests/{uuid.uuid4()}/confirm-registration", json={"email": "x@example.com"}
        )

        assert response.status_code == 200
        assert response.json()["confirmed"] is False

    def test_confirm_registration_already_confirmed(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.confirm_registration.return_value = ConfirmResult.ALREADY_CONFIRMED

        response = client.post(
            f"/v1/requests/{uuid.uuid4()}/confirm-registration", json={"email": "a@example.com"}
        )

        assert response.json() == {"message": "Request already confirmed", "confirmed": True}

    def test_confirm_registration_expired_returns_410(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.confirm_registration.side_effect = RequestExpired("id")

        response = client.post(
            f"/v1/requests/{uuid.uuid4()}/confirm-registration", json={"email": "a@example.com"}
        )

        assert response.status_code == 410

    def test_confirm_registration_not_found(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.confirm_registration.return_value = ConfirmResult.NOT_FOUND

        response = client.post(
            f"/v1/requests/{uuid.uuid4()}/confirm-registration", json={"email": "a@example.com"}
        )

        assert response.status_code == 404

    def test_confirm_email_addition_via_get(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        request_id = uuid.uuid4()
        mock_service.confirm_email_addition.return_value = ConfirmResult.CONFIRMED

        response = client.get(f"/v1/requests/{request_id}/confirm-email")

        assert response.status_code == 200
        mock_service.confirm_email_addition.assert_called_once_with(request_id)

    def test_confirm_email_addition_duplicate_returns_409(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.confirm_email_addition.side_effect = DuplicateResource("taken")

        response = client.get(f"/v1/requests/{uuid.uuid4()}/confirm-email")

        assert response.status_code == 409

    def test_invalid_request_id_returns_422(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        response = client.get("/v1/requests/not-a-uuid/confirm-email")
        assert response.status_code == 422

    def test_request_status(self, client: TestClient, mock_service: MagicMock) -> None:
        request_id = uuid.uuid4()
        mock_service.request_status.return_value = ("New account registration", RequestState.PENDING)

        response = client.get(f"/v1/requests/{request_id}")

        assert response.json() == {
            "request_id": str(request_id),
            "description": "New account registration",
            "state": "PENDING",
        }

    def test_request_status_unknown(self, client: TestClient, mock_service: MagicMock) -> None:
        mock_service.request_status.return_value = None
        assert client.get(f"/v1/requests/{uuid.uuid4()}").status_code == 404


class TestPasswordResetEndpoints:
    """Tests for the password reset endpoints."""

    def test_request_reset_is_generic(self, client: TestClient, mock_service: MagicMock) -> None:
        mock_service.request_password_reset.return_value = None

        response = client.post("/v1/password-resets", json={"email": "ghost@example.com"})

        assert response.status_code == 202
        assert "If the address is registered" in response.json()["message"]
        mock_service.request_password_reset.assert_called_once_with(
            "ghost@example.com", "testclient"
        )

    def test_reset_password_success(self, client: TestClient, mock_service: MagicMock) -> None:
        token_id = uuid.uuid4()

        response = client.post(
            f"/v1/password-resets/{token_id}",
            json={
                "email": "alice@example.com",
                "new_password": "newpass1",
                "new_password_confirmation": "newpass1",
            },
        )

        assert response.status_code == 200
        mock_service.reset_password.assert_called_once_with(
            token_id, "alice@example.com", "newpass1"
        )

    def test_reset_password_used_token_returns_410(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.reset_password.side_effect = ResetTokenExpired("id")

        response = client.post(
            f"/v1/password-resets/{uuid.uuid4()}",
            json={
                "email": "alice@example.com",
                "new_password": "newpass1",
                "new_password_confirmation": "newpass1",
            },
        )

        assert response.status_code == 410
        assert "start again" in response.json()["detail"]

    def test_reset_password_mismatched_user_returns_400(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.reset_password.side_effect = ValidationFailed(
            "Reset token does not match this email address"
        )

        response = client.post(
            f"/v1/password-resets/{uuid.uuid4()}",
            json={
                "email": "bob@example.com",
                "new_password": "newpass1",
                "new_password_confirmation": "newpass1",
            },
        )

        assert response.status_code == 400


class TestAuthenticatedEndpoints:
    """Tests for login and /me endpoints."""

    def test_login_without_credentials_returns_401(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        assert client.post("/v1/login").status_code == 401

    def test_login_with_bad_credentials_returns_401(
        self, client: TestClient, mock_service: MagicMock
    ) -> None:
        mock_service.login.return_value = None

        response = client.post("/v1/login", headers=basic_auth_header("a@example.com", "nope"))

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid credentials"}

    def test_login_normalizes_email(self, client: TestClient, mock_service: MagicMock) -> None:
        current = make_user()
        mock_service.login.return_value = current

        response = client.post(
            "/v1/login", headers=basic_auth_header("  ALICE@Example.com ", "secret1")
        )

        assert response.status_code == 200
        assert response.json()["username"] == "alice"
        assert response.json()["emails"][0]["email"] == "alice@example.com"
        _, email, password = mock_service.login.call_args[0]
        assert email == "alice@example.com"
        assert password == "secret1"

    def test_logout(self, client: TestClient, mock_service: MagicMock) -> None:
        response = client.post("/v1/logout")

        assert response.status_code == 200
        mock_service.logout.assert_called_once()

    def test_change_password(
        self, client: TestClient, mock_service: MagicMock, user: User
    ) -> None:
        response = client.put(
            "/v1/me/password",
            json={
                "old_password": "secret1",
                "new_password": "newpass1",
                "new_password_confirmation": "newpass1",
            },
        )

        assert response.status_code == 200
        mock_service.change_password.assert_called_once_with(user.id, "secret1", "newpass1")

    def test_change_password_wrong_old(
        self, client: TestClient, mock_service: MagicMock, user: User
    ) -> None:
        mock_service.change_password.side_effect = ValidationFailed("Current password is incorrect")

        response = client.put(
            "/v1/me/password",
            json={
                "old_password": "wrong1",
                "new_password": "newpass1",
                "new_password_confirmation": "newpass1",
            },
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Current password is incorrect"}

    def test_add_email(self, client: TestClient, mock_service: MagicMock, user: User) -> None:
        request_id = uuid.uuid4()
        mock_service.add_email.return_value = UserAccountRequest(
            id=request_id,
            request_type=RequestType.NEW_EMAIL,
            email="alice@work.org",
            request_ip="testclient",
            created_at=datetime.now(timezone.utc),
            user_id=user.id,
        )

        response = client.post("/v1/me/emails", json={"email": "alice@work.org"})

        assert response.status_code == 202
        assert response.json() == {
            "message": "Confirmation email sent",
            "request_id": str(request_id),
            "email": "alice@work.org",
        }
        mock_service.add_email.assert_called_once_with(user.id, "alice@work.org", "testclient")

    def test_remove_last_email_returns_400(
        self, client: TestClient, mock_service: MagicMock, user: User
    ) -> None:
        mock_service.remove_email.side_effect = ValidationFailed(
            "Cannot remove the only email address of an account"
        )

        response = client.delete(f"/v1/me/emails/{user.emails[0].id}")

        assert response.status_code == 400
        mock_service.remove_email.assert_called_once_with(user.id, user.emails[0].id)
