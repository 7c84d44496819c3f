"""Security domain Pydantic schemas."""

from typing import Annotated, List

from pydantic import Field, StringConstraints, field_validator

from helioscribe.common.schemas import CamelModel
from helioscribe.domains.user.passwords import password_complexity_error


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        error = password_complexity_error(value)
        if error:
            raise ValueError(error)
        return value


class MfaVerifyRequest(CamelModel):
    token: Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d{6}$")]


class MfaDisableRequest(CamelModel):
    password: str = Field(..., min_length=1)


class MfaSetupResponse(CamelModel):
    secret: str
    qr_code: str
    backup_codes: List[str]
    manual_entry_key: str


class MfaStatusResponse(CamelModel):
    mfa_enabled: bool
    has_secret: bool
