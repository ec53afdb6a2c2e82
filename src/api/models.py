"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from src.domain.ports import RequestState


class RegisterRequest(BaseModel):
    """Request model for user registration."""

    username: str = Field(..., description="Desired username (more than 4 characters)")
    email: EmailStr
    password: str = Field(
        ..., min_length=6, max_length=72, description="User password (6 to 72 characters)"
    )
    password_confirmation: str

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.password_confirmation:
            raise ValueError("Passwords do not match")
        return self


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    message: str
    request_id: UUID
    email: str
    expires_in_hours: int


class ConfirmRegistrationRequest(BaseModel):
    """Request model for registration confirmation."""

    email: str = Field(..., description="The email address the account was registered with")


class ConfirmResponse(BaseModel):
    """Response model for request confirmation."""

    message: str
    confirmed: bool


class RequestStatusResponse(BaseModel):
    """Response model describing an account request."""

    request_id: UUID
    description: str
    state: RequestState


class PasswordResetRequest(BaseModel):
    """Request model for starting a password reset."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request model for redeeming a password reset token."""

    email: EmailStr
    new_password: str = Field(..., min_length=6, max_length=72)
    new_password_confirmation: str

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.new_password != self.new_password_confirmation:
            raise ValueError("Passwords do not match")
        return self


class ChangePasswordRequest(BaseModel):
    """Request model for changing the password of the authenticated user."""

    old_password: str
    new_password: str = Field(..., min_length=6, max_length=72)
    new_password_confirmation: str

    @model_validator(mode="after")
    def passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.new_password_confirmation:
            raise ValueError("Passwords do not match")
        return self


class AddEmailRequest(BaseModel):
    """Request model for adding an email address."""

    email: EmailStr


class EmailAdditionResponse(BaseModel):
    """Response model for a pending email addition."""

    message: str
    request_id: UUID
    email: str


class EmailAddressResponse(BaseModel):
    id: UUID
    email: str


class UserResponse(BaseModel):
    """Response model for the authenticated user."""

    id: UUID
    username: str
    emails: list[EmailAddressResponse]


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
