"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_bearer_token
from app.exceptions import AuthenticationFailed
from app.rate_limit import limiter
from app.schemas.auth import LoginRequest, LoginResponse
from app.schemas.user import MessageResponse, email_error
from app.services.account import get_account_service

logger = logging.getLogger("account_api")

router = APIRouter(prefix="/api/1.0", tags=["Authentication"])


@router.post("/auth", response_model=LoginResponse)
@limiter.limit("10/minute")
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    """Authenticate with email and password and receive a session token."""
    if not body.email or not body.password or email_error(body.email):
        raise AuthenticationFailed()

    result = get_account_service().authenticate(db, body.email, body.password)
    return LoginResponse(id=result.user_id, username=result.username, token=result.token)


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, db: Session = Depends(get_db)) -> MessageResponse:
    """Revoke the Bearer token, if one was sent. Always succeeds."""
    get_account_service().logout(db, get_bearer_token(request))
    return MessageResponse(message="Logged out")
