"""User account API endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import Pagination, get_authenticated_user, get_pagination, require_account_owner
from app.exceptions import Forbidden, ValidationFailure, collect_validation_errors
from app.models.user import User
from app.rate_limit import limiter
from app.schemas.user import (
    MessageResponse,
    PasswordResetRequest,
    PasswordUpdateRequest,
    RegisterRequest,
    UserListResponse,
    UserPageResponse,
    UserResponse,
    UserUpdateRequest,
    password_error,
)
from app.services.account import get_account_service
from app.services.token import CurrentUser

router = APIRouter(prefix="/api/1.0", tags=["Users"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, username=user.username, email=user.email, profile_image=user.profile_image)


def _parse_user_id(user_id: str) -> int | None:
    try:
        return int(user_id)
    except ValueError:
        return None


@router.post("/users", response_model=MessageResponse)
@limiter.limit("5/minute")
def register(request: Request, body: RegisterRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Create an inactive account and send the activation email."""
    get_account_service().register(db, body.username, body.email, body.password)  # type: ignore[arg-type]
    return MessageResponse(message="User created")


@router.post("/users/token/{token}", response_model=MessageResponse)
def activate(token: str, db: Session = Depends(get_db)) -> MessageResponse:
    """Activate an account with the emailed activation token."""
    get_account_service().activate(db, token)
    return MessageResponse(message="Account is activated")


@router.get("/users", response_model=UserListResponse)
def list_users(
    pagination: Pagination = Depends(get_pagination),
    principal: CurrentUser | None = Depends(get_authenticated_user),
    db: Session = Depends(get_db),
) -> UserListResponse:
    """List active users page by page, excluding the caller."""
    page = get_account_service().get_users(db, pagination.page, pagination.size, principal)
    return UserListResponse(
        users=UserPageResponse(
            content=[_user_response(u) for u in page.content],
            page=page.page,
            size=page.size,
            total_pages=page.total_pages,
        )
    )


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: str, db: Session = Depends(get_db)) -> UserResponse:
    """Get a single active user."""
    parsed_id = _parse_user_id(user_id)
    if parsed_id is None:
        raise ValidationFailure({}, "Invalid user ID")
    return _user_response(get_account_service().get_user(db, parsed_id))


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    body: dict[str, Any] | None = Body(default=None),
    principal: CurrentUser | None = Depends(get_authenticated_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    """Update the caller's username and profile image."""
    parsed_id = _parse_user_id(user_id)
    if parsed_id is None:
        raise Forbidden()
    require_account_owner(parsed_id, principal, db)

    # Ownership is checked before the body is looked at
    try:
        update = UserUpdateRequest.model_validate(body or {})
    except ValidationError as e:
        raise ValidationFailure(collect_validation_errors(e.errors())) from None

    user = get_account_service().update_user(db, parsed_id, update.username, update.image)  # type: ignore[arg-type]
    return _user_response(user)


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    principal: CurrentUser | None = Depends(get_authenticated_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Delete the caller's account and every session it holds."""
    parsed_id = _parse_user_id(user_id)
    if parsed_id is None:
        raise Forbidden()
    require_account_owner(parsed_id, principal, db)

    get_account_service().delete_user(db, parsed_id)
    return MessageResponse(message="User deleted")


@router.post("/user/password-reset", response_model=MessageResponse)
@limiter.limit("3/minute")
def request_password_reset(
    request: Request, body: PasswordResetRequest, db: Session = Depends(get_db)
) -> MessageResponse:
    """Email a password reset token."""
    get_account_service().request_password_reset(db, body.email)  # type: ignore[arg-type]
    return MessageResponse(message="Check your email for steps on resetting your password")


@router.put("/user/password", response_model=MessageResponse)
@limiter.limit("5/minute")
def update_password(request: Request, body: PasswordUpdateRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Set a new password using a reset token. Signs the user out of every session."""
    service = get_account_service()
    service.validate_reset_token(db, body.password_reset_token)

    error = password_error(body.password)
    if error:
        raise ValidationFailure({"password": error})

    service.update_password(db, body.password_reset_token, body.password)  # type: ignore[arg-type]
    return MessageResponse(message="Password updated")
