"""Pydantic schemas for user and account endpoints."""

import re

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.services.file import get_file_service

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).*$")


def username_error(value: str | None) -> str | None:
    if value is None or not value.strip():
        return "Username cannot be null"
    # Stored stripped, so the length rule applies to the stripped value
    if not 4 <= len(value.strip()) <= 32:
        return "Username must have min 4 characters and max 32 characters"
    return None


def email_error(value: str | None) -> str | None:
    if value is None or not value.strip():
        return "Email cannot be null"
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return "Email is not valid"
    return None


def password_error(value: str | None) -> str | None:
    if value is None or value == "":
        return "Password cannot be null"
    if len(value) < 6:
        return "Password must be at least 6 characters"
    if not PASSWORD_PATTERN.match(value):
        return "Password must have at least 1 uppercase, 1 lowercase letter and 1 number"
    return None


def _raise_if(error: str | None) -> None:
    if error:
        raise ValueError(error)


class CamelModel(BaseModel):
    """Base schema exposing camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RegisterRequest(CamelModel):
    username: str | None = Field(default=None, validate_default=True)
    email: str | None = Field(default=None, validate_default=True)
    password: str | None = Field(default=None, validate_default=True)

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str | None) -> str | None:
        _raise_if(username_error(value))
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str | None) -> str | None:
        _raise_if(email_error(value))
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str | None) -> str | None:
        _raise_if(password_error(value))
        return value


class UserUpdateRequest(CamelModel):
    username: str | None = Field(default=None, validate_default=True)
    image: str | None = None

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str | None) -> str | None:
        _raise_if(username_error(value))
        return value

    @field_validator("image")
    @classmethod
    def check_image(cls, value: str | None) -> str | None:
        if value:
            _raise_if(get_file_service().validate_image(value))
        return value


class PasswordResetRequest(CamelModel):
    email: str | None = Field(default=None, validate_default=True)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str | None) -> str | None:
        _raise_if(email_error(value))
        return value


class PasswordUpdateRequest(CamelModel):
    # Validated in the route, after the reset token has been checked
    password: str | None = None
    password_reset_token: str | None = None


class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    profile_image: str | None = None


class UserPageResponse(CamelModel):
    content: list[UserResponse]
    page: int
    size: int
    total_pages: int


class UserListResponse(CamelModel):
    users: UserPageResponse


class MessageResponse(BaseModel):
    message: str
