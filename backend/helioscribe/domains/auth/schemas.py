"""Auth domain Pydantic schemas."""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AliasChoices, EmailStr, Field, StringConstraints, field_validator

from helioscribe.common.schemas import CamelModel
from helioscribe.domains.user.models import HOW_HEARD_OPTIONS
from helioscribe.domains.user.passwords import password_complexity_error

Code = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d{6}$")]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


def _strong_password(value: str) -> str:
    error = password_complexity_error(value)
    if error:
        raise ValueError(error)
    return value


class RegisterRequest(CamelModel):
    """Local registration."""

    first_name: Name
    last_name: Name
    email: EmailStr
    phone: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    address: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    how_heard: str
    password: str
    device_fingerprint: Optional[str] = None
    bot_token: Optional[str] = Field(
        None, validation_alias=AliasChoices("botToken", "recaptchaToken", "bot_token")
    )

    @field_validator("how_heard")
    @classmethod
    def _how_heard_option(cls, value: str) -> str:
        value = value.strip()
        if value not in HOW_HEARD_OPTIONS:
            raise ValueError("Please select a valid option")
        return value

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        return _strong_password(value)


class VerifyEmailRequest(CamelModel):
    email: EmailStr
    code: Code


class EmailRequest(CamelModel):
    email: EmailStr


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    bot_token: Optional[str] = Field(
        None, validation_alias=AliasChoices("botToken", "recaptchaToken", "bot_token")
    )
    mfa_token: Optional[str] = None


class VerifyResetCodeRequest(CamelModel):
    email: EmailStr
    code: Code


class ResetPasswordRequest(CamelModel):
    reset_token: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        return _strong_password(value)


class LoginUser(CamelModel):
    """User subset returned with a session token."""

    id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None


class UserProfile(LoginUser):
    """User subset returned by /auth/me."""

    how_heard: Optional[str] = None
    is_email_verified: bool
    created_at: datetime
    last_login: Optional[datetime] = None
