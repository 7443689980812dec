"""Account service: registration, activation, login, profile and password management."""

import logging
import math
from dataclasses import dataclass

import bcrypt
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import AuthenticationFailed, EmailDeliveryFailed, Forbidden, InvalidToken, NotFound, ValidationFailure
from app.models.user import User
from app.services.email import get_email_service
from app.services.file import get_file_service
from app.services.generator import random_string
from app.services.token import CurrentUser, get_token_service

logger = logging.getLogger("account_api")

ONE_TIME_TOKEN_LENGTH = 16


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


@dataclass
class LoginResult:
    """Result of a successful login."""

    user_id: int
    username: str
    token: str


@dataclass
class UserPage:
    """One page of the user listing."""

    content: list[User]
    page: int
    size: int
    total_pages: int


class AccountService:
    """Handles the account lifecycle on top of the user table, mail and token services."""

    def find_by_email(self, db: Session, email: str) -> User | None:
        return db.query(User).filter(func.lower(User.email) == email.lower().strip()).first()

    def register(self, db: Session, username: str, email: str, password: str) -> User:
        """Create an inactive user and send the activation email.

        The row is only committed once the email has gone out; a delivery
        failure rolls the insert back and raises EmailDeliveryFailed.
        """
        if self.find_by_email(db, email):
            raise ValidationFailure({"email": "Email already in use"})

        user = User(
            username=username.strip(),
            email=email.lower().strip(),
            password_hash=hash_password(password),
            active=False,
            activation_token=random_string(ONE_TIME_TOKEN_LENGTH),
        )
        db.add(user)
        try:
            db.flush()
        except IntegrityError:
            # A concurrent registration took the email after the lookup above
            db.rollback()
            raise ValidationFailure({"email": "Email already in use"}) from None

        try:
            get_email_service().send_activation_token(user.email, user.activation_token)
        except EmailDeliveryFailed:
            db.rollback()
            raise
        db.commit()
        db.refresh(user)

        logger.info("Registered user id=%s", user.id)
        return user

    def activate(self, db: Session, token: str) -> None:
        """Activate the account holding ``token``. Raises InvalidToken otherwise."""
        user = db.query(User).filter(User.activation_token == token).first()
        if not user:
            raise InvalidToken()

        user.active = True
        user.activation_token = None
        db.commit()
        logger.info("Activated user id=%s", user.id)

    def authenticate(self, db: Session, email: str | None, password: str | None) -> LoginResult:
        """Check credentials and issue a session token.

        Unknown email and wrong password fail the same way.
        """
        user = self.find_by_email(db, email) if email else None
        if not user or not password or not check_password(password, user.password_hash):
            raise AuthenticationFailed()

        if not user.active:
            raise Forbidden()

        token = get_token_service().issue(db, user)
        return LoginResult(user_id=user.id, username=user.username, token=token)

    def logout(self, db: Session, token: str | None) -> None:
        if token:
            get_token_service().revoke(db, token)

    def get_users(self, db: Session, page: int, size: int, principal: CurrentUser | None = None) -> UserPage:
        """Page through active users, leaving out the caller."""
        query = db.query(User).filter(User.active.is_(True))
        if principal:
            query = query.filter(User.id != principal.user_id)

        total = query.count()
        users = query.order_by(User.id).offset((page - 1) * size).limit(size).all()
        return UserPage(content=users, page=page, size=size, total_pages=math.ceil(total / size))

    def get_user(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id, User.active.is_(True)).first()
        if not user:
            raise NotFound()
        return user

    def update_user(self, db: Session, user_id: int, username: str, image: str | None = None) -> User:
        """Update the username and, when given, replace the profile image."""
        user = db.get(User, user_id)
        if not user:
            raise NotFound()

        file_service = get_file_service()
        previous_image = user.profile_image
        user.username = username.strip()
        if image:
            user.profile_image = file_service.save_profile_image(image)
        db.commit()
        db.refresh(user)

        if image and previous_image:
            file_service.delete_profile_image(previous_image)
        return user

    def delete_user(self, db: Session, user_id: int) -> None:
        """Delete the user, then every session token it owned."""
        user = db.get(User, user_id)
        if not user:
            raise NotFound()

        profile_image = user.profile_image
        db.delete(user)
        db.commit()
        get_token_service().revoke_all(db, user_id)

        if profile_image:
            get_file_service().delete_profile_image(profile_image)
        logger.info("Deleted user id=%s", user_id)

    def request_password_reset(self, db: Session, email: str) -> None:
        """Set a reset token and email it. Raises NotFound for unknown addresses."""
        user = self.find_by_email(db, email)
        if not user:
            raise NotFound("Email not found")

        user.password_reset_token = random_string(ONE_TIME_TOKEN_LENGTH)
        try:
            db.flush()
            get_email_service().send_password_reset_token(user.email, user.password_reset_token)
        except EmailDeliveryFailed:
            db.rollback()
            raise EmailDeliveryFailed("Failed to send email") from None
        db.commit()

    def validate_reset_token(self, db: Session, token: str | None) -> User:
        """Return the user holding ``token`` or raise Forbidden."""
        user = db.query(User).filter(User.password_reset_token == token).first() if token else None
        if not user:
            raise Forbidden("You are not authorized to update this password")
        return user

    def update_password(self, db: Session, token: str | None, password: str) -> None:
        """Set a new password with a reset token and sign the user out everywhere."""
        user = self.validate_reset_token(db, token)
        user.password_hash = hash_password(password)
        user.password_reset_token = None
        db.commit()

        get_token_service().revoke_all(db, user.id)
        logger.info("Password updated for user id=%s, all sessions revoked", user.id)


_account_service: AccountService | None = None


def get_account_service() -> AccountService:
    """Get singleton account service instance."""
    global _account_service
    if _account_service is None:
        _account_service = AccountService()
    return _account_service
