"""Pydantic schemas for authentication endpoints."""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, AliasChoices, BaseModel, EmailStr, Field, ValidationInfo, field_validator

from app.services.passwords import password_policy_errors

MAX_FIELD_LENGTH = 255


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if len(value) > MAX_FIELD_LENGTH:
        raise ValueError(f"The email field must not be greater than {MAX_FIELD_LENGTH} characters.")
    return value


Email = Annotated[EmailStr, AfterValidator(_normalize_email)]


class NewPasswordFields(BaseModel):
    """Password + confirmation pair, checked against the password policy."""

    password: str
    password_confirmation: str

    @field_validator("password")
    @classmethod
    def check_policy(cls, value: str) -> str:
        errors = password_policy_errors(value)
        if errors:
            raise ValueError(errors[0])
        return value

    @field_validator("password_confirmation")
    @classmethod
    def check_confirmation(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("The password field confirmation does not match.")
        return value


class RegisterRequest(NewPasswordFields):
    name: str
    email: Email

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("The name field is required.")
        if len(value) > MAX_FIELD_LENGTH:
            raise ValueError(f"The name field must not be greater than {MAX_FIELD_LENGTH} characters.")
        return value


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(min_length=1)
    remember: bool = False


class ForgotPasswordRequest(BaseModel):
    email: Email


class ResetPasswordRequest(NewPasswordFields):
    token: str = Field(min_length=1)
    email: Email


class VerificationNotificationRequest(BaseModel):
    email: Email


class UserResponse(BaseModel):
    id: str = Field(validation_alias=AliasChoices("ulid", "id"))
    name: str
    email: str
    avatar: str | None
    email_verified_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AccessTokenResponse(BaseModel):
    id: int
    name: str
    created_at: datetime
    last_used_at: datetime | None
    expires_at: datetime | None
    current: bool = False

    model_config = {"from_attributes": True}


class OkResponse(BaseModel):
    ok: bool = True


class MessageResponse(BaseModel):
    ok: bool = True
    message: str


class RegisterResponse(BaseModel):
    ok: bool = True
    must_verify_email: bool


class LoginResponse(BaseModel):
    ok: bool = True
    user: UserResponse
    token: str


class VerifyEmailRequiredResponse(BaseModel):
    ok: bool = False
    action: str = "verify_email"
    message: str


class UserEnvelope(BaseModel):
    ok: bool = True
    user: UserResponse


class TokenListResponse(BaseModel):
    ok: bool = True
    tokens: list[AccessTokenResponse]
