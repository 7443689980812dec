"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel


class LoginRequest(BaseModel):
    # Malformed credentials are reported as a failed login, not a validation error
    email: str | None = None
    password: str | None = None


class LoginResponse(BaseModel):
    id: int
    username: str
    token: str
