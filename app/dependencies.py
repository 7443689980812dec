"""Authentication and pagination dependencies for FastAPI routes."""

import base64
import binascii
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import Forbidden, InvalidToken
from app.models.user import User
from app.services.account import check_password, get_account_service
from app.services.token import CurrentUser, get_token_service

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 10


@dataclass
class Pagination:
    """Clamped paging parameters."""

    page: int
    size: int


def get_bearer_token(request: Request) -> str | None:
    """Return the raw token from ``Authorization: Bearer <token>``, if present."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def _decode_basic_credentials(auth_header: str) -> tuple[str, str] | None:
    try:
        decoded = base64.b64decode(auth_header[6:]).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    email, sep, password = decoded.partition(":")
    if not sep:
        return None
    return email, password


def get_authenticated_user(
    request: Request,
    db: Session = Depends(get_db),
) -> CurrentUser | None:
    """Resolve the request principal from a Bearer token or Basic credentials.

    A missing, unknown or expired credential yields None; each endpoint decides
    whether a principal is required. Basic credentials naming an unknown or
    inactive account are rejected outright with Forbidden.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    if auth_header.startswith("Bearer "):
        try:
            return get_token_service().verify(db, auth_header[7:])
        except InvalidToken:
            return None

    if auth_header.startswith("Basic "):
        credentials = _decode_basic_credentials(auth_header)
        if not credentials:
            return None
        email, password = credentials
        user = get_account_service().find_by_email(db, email)
        if not user or not user.active:
            raise Forbidden()
        if check_password(password, user.password_hash):
            return CurrentUser(user_id=user.id)

    return None


def require_account_owner(user_id: int, principal: CurrentUser | None, db: Session) -> CurrentUser:
    """Ensure the principal exists, targets its own account, and that account is active."""
    if principal is None or principal.user_id != user_id:
        raise Forbidden()

    user = db.get(User, principal.user_id)
    if not user or not user.active:
        raise Forbidden()
    return principal


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def get_pagination(page: str | None = None, size: str | None = None) -> Pagination:
    """Parse ``page``/``size`` query params, falling back to page 1 and size 10."""
    page_number = _parse_int(page, 1)
    if page_number < 1:
        page_number = 1

    page_size = _parse_int(size, DEFAULT_PAGE_SIZE)
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = DEFAULT_PAGE_SIZE

    return Pagination(page=page_number, size=page_size)
