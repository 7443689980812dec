"""User model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.session_token import SessionToken


class User(Base):
    """Registered account. Created inactive until the activation token is presented."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(32), nullable=False)
    email = Column(String(256), unique=True, nullable=False, index=True)
    password_hash = Column(String(256), nullable=False)
    active = Column(Boolean, nullable=False, default=False)
    activation_token = Column(String(64), nullable=True, index=True)
    password_reset_token = Column(String(64), nullable=True, index=True)
    profile_image = Column(String(256), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    tokens = relationship(
        SessionToken,
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
