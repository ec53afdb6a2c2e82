"""
API v1 routes.

Defines REST endpoints for registration, email addresses and passwords.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from src.adapters.session.memory import RequestSession
from src.api.dependencies import (
    get_account_service,
    get_current_user,
    get_request_ip,
    get_session,
)
from src.api.models import (
    AddEmailRequest,
    ChangePasswordRequest,
    ConfirmRegistrationRequest,
    ConfirmResponse,
    EmailAdditionResponse,
    EmailAddressResponse,
    ErrorResponse,
    MessageResponse,
    PasswordResetRequest,
    RegisterRequest,
    RegisterResponse,
    RequestStatusResponse,
    ResetPasswordRequest,
    UserResponse,
)
from src.config.settings import Settings, get_settings
from src.domain.accounts import AccountService
from src.domain.exceptions import (
    AccountError,
    DuplicateResource,
    RequestExpired,
    ResetTokenExpired,
)
from src.domain.models import User
from src.domain.ports import ConfirmResult

router = APIRouter(tags=["v1"])

_CONFIRM_MESSAGES = {
    ConfirmResult.CONFIRMED: ("Request confirmed", True),
    ConfirmResult.ALREADY_CONFIRMED: ("Request already confirmed", True),
    ConfirmResult.EMAIL_MISMATCH: ("Request not confirmed", False),
}


def _http_error(exc: AccountError) -> HTTPException:
    """Map a domain error to its HTTP response."""
    if isinstance(exc, DuplicateResource):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (RequestExpired, ResetTokenExpired)):
        return HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="This link has expired or was already used, please start again",
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _confirm_response(result: ConfirmResult) -> ConfirmResponse:
    if result == ConfirmResult.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    message, confirmed = _CONFIRM_MESSAGES[result]
    return ConfirmResponse(message=message, confirmed=confirmed)


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        emails=[EmailAddressResponse(id=a.id, email=a.email) for a in user.emails],
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid username, email or password"},
        409: {"model": ErrorResponse, "description": "Username or email already taken"},
        422: {"description": "Validation error"},
    },
    summary="Register a new user",
    description="Submit username, email and password to begin registration. "
    "A confirmation link will be sent to the provided email.",
)
async def register(
    request_data: RegisterRequest,
    request_ip: str = Depends(get_request_ip),
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
) -> RegisterResponse:
    """
    Register a new user and send the confirmation email.

    - **username**: Desired username
    - **email**: Valid email address to register
    - **password**: Password (minimum 6 characters), repeated in password_confirmation
    """
    try:
        account_request = service.register(
            request_data.username, request_data.email, request_data.password, request_ip
        )
    except AccountError as e:
        raise _http_error(e) from None
    return RegisterResponse(
        message="Confirmation email sent",
        request_id=account_request.id,
        email=account_request.email,
        expires_in_hours=settings.registration_expiration_hours,
    )


@router.get(
    "/requests/{request_id}",
    response_model=RequestStatusResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown request"}},
    summary="Describe an account request",
)
async def request_status(
    request_id: UUID,
    service: AccountService = Depends(get_account_service),
) -> RequestStatusResponse:
    found = service.request_status(request_id)
    if found is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    description, state = found
    return RequestStatusResponse(request_id=request_id, description=description, state=state)


@router.post(
    "/requests/{request_id}/confirm-registration",
    response_model=ConfirmResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown registration request"},
        409: {"model": ErrorResponse, "description": "Username or email taken meanwhile"},
        410: {"model": ErrorResponse, "description": "Request expired"},
    },
    summary="Confirm a registration",
    description="Re-enter the registered email address to create the account.",
)
async def confirm_registration(
    request_id: UUID,
    request_data: ConfirmRegistrationRequest,
    service: AccountService = Depends(get_account_service),
) -> ConfirmResponse:
    try:
        result = service.confirm_registration(request_id, request_data.email)
    except AccountError as e:
        raise _http_error(e) from None
    return _confirm_response(result)


@router.get(
    "/requests/{request_id}/confirm-email",
    response_model=ConfirmResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown email addition request"},
        409: {"model": ErrorResponse, "description": "Email registered meanwhile"},
        410: {"model": ErrorResponse, "description": "Request expired"},
    },
    summary="Confirm an added email address",
    description="Opening the link sent to the new address attaches it to the account.",
)
async def confirm_email_addition(
    request_id: UUID,
    service: AccountService = Depends(get_account_service),
) -> ConfirmResponse:
    try:
        result = service.confirm_email_addition(request_id)
    except AccountError as e:
        raise _http_error(e) from None
    return _confirm_response(result)


@router.post(
    "/password-resets",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a password reset",
    description="Sends a single-use reset link if the address belongs to an account.",
)
async def request_password_reset(
    request_data: PasswordResetRequest,
    request_ip: str = Depends(get_request_ip),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    # Same answer whether or not the address is known (no enumeration)
    service.request_password_reset(request_data.email, request_ip)
    return MessageResponse(message="If the address is registered, a reset link was sent")


@router.post(
    "/password-resets/{token_id}",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Token does not match the email"},
        410: {"model": ErrorResponse, "description": "Token expired or already used"},
        422: {"description": "Validation error"},
    },
    summary="Reset a password",
)
async def reset_password(
    token_id: UUID,
    request_data: ResetPasswordRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        service.reset_password(token_id, request_data.email, request_data.new_password)
    except AccountError as e:
        raise _http_error(e) from None
    return MessageResponse(message="Password changed")


@router.post(
    "/login",
    response_model=UserResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
    summary="Log in",
    description="Credentials (email:password) are provided via HTTP BASIC AUTH header. "
    "Any address owned by the account can be used.",
)
async def login(user: User = Depends(get_current_user)) -> UserResponse:
    return _user_response(user)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Log out",
    description="HTTP BASIC AUTH is stateless: credentials are checked on every request and "
    "no server-side session outlives it. This clears the identity of the current request "
    "only; clients log out by discarding their stored credentials.",
)
async def logout(
    service: AccountService = Depends(get_account_service),
    session: RequestSession = Depends(get_session),
) -> MessageResponse:
    service.logout(session)
    return MessageResponse(message="Logged out")


@router.put(
    "/me/password",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Wrong current password"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
    summary="Change password",
)
async def change_password(
    request_data: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        service.change_password(user.id, request_data.old_password, request_data.new_password)
    except AccountError as e:
        raise _http_error(e) from None
    return MessageResponse(message="Password changed")


@router.post(
    "/me/emails",
    response_model=EmailAdditionResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
    summary="Add an email address",
    description="A confirmation link is sent to the new address.",
)
async def add_email(
    request_data: AddEmailRequest,
    request_ip: str = Depends(get_request_ip),
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> EmailAdditionResponse:
    try:
        account_request = service.add_email(user.id, request_data.email, request_ip)
    except AccountError as e:
        raise _http_error(e) from None
    return EmailAdditionResponse(
        message="Confirmation email sent",
        request_id=account_request.id,
        email=account_request.email,
    )


@router.delete(
    "/me/emails/{address_id}",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Not owned, or the only address"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
    summary="Remove an email address",
)
async def remove_email(
    address_id: UUID,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    try:
        service.remove_email(user.id, address_id)
    except AccountError as e:
        raise _http_error(e) from None
    return MessageResponse(message="Email address removed")
