from __future__ import annotations

import re

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from authflow.application.services.password_hashing import MAX_PASSWORD_BYTES
from authflow.shared.errors.validation_types import ValidationErrorType

LOGIN_PATTERN = r"^[a-zA-Z][a-zA-Z0-9_.-]*$"
PASSWORD_MIN_LENGTH = 8


def _validate_login(value: str) -> str:
    value = value.strip()
    if not value:
        raise PydanticCustomError(ValidationErrorType.MISSING, "Login cannot be empty", {})
    if not re.match(LOGIN_PATTERN, value):
        raise PydanticCustomError(
            ValidationErrorType.LOGIN_INVALID_CHARS,
            "Login must start with a letter and contain only letters, digits, '_', '.' or '-'",
            {"pattern": LOGIN_PATTERN},
        )
    return value


def _validate_new_password(value: str) -> str:
    if len(value) < PASSWORD_MIN_LENGTH:
        raise PydanticCustomError(
            ValidationErrorType.PASSWORD_TOO_SHORT,
            "Password must be at least {min_length} characters long",
            {"min_length": PASSWORD_MIN_LENGTH},
        )
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PydanticCustomError(
            ValidationErrorType.PASSWORD_TOO_LONG,
            "Password must be at most {max_bytes} bytes long",
            {"max_bytes": MAX_PASSWORD_BYTES},
        )
    return value


class _NewPasswordDTO(BaseModel):
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _validate_new_password(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "_NewPasswordDTO":
        if self.password != self.confirm_password:
            raise PydanticCustomError(
                ValidationErrorType.PASSWORDS_DO_NOT_MATCH,
                "Passwords do not match",
                {},
            )
        return self


class SignUpRequestDTO(_NewPasswordDTO):
    login: str = Field(min_length=1, max_length=64)
    email: EmailStr
    first_name: str = Field("", max_length=64)
    last_name: str = Field("", max_length=64)

    @field_validator("login")
    @classmethod
    def validate_login(cls, value: str) -> str:
        return _validate_login(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, value: str) -> str:
        return value.strip()


class LoginRequestDTO(BaseModel):
    login: str = Field(min_length=1, max_length=64)
    # No strength check on login; overlong candidates simply fail to match
    password: str = Field(min_length=1, max_length=1024)

    @field_validator("login")
    @classmethod
    def validate_login(cls, value: str) -> str:
        return _validate_login(value)


class ChangePasswordRequestDTO(_NewPasswordDTO):
    pass


class ResetPasswordRequestDTO(_NewPasswordDTO):
    pass


class LoginNameDTO(BaseModel):
    """Body of the forgot-password and resend-activation requests."""

    login: str = Field(min_length=1, max_length=64)

    @field_validator("login")
    @classmethod
    def validate_login(cls, value: str) -> str:
        return _validate_login(value)
