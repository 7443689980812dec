"""Configuration settings for the Account API."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./account_api.db")

    # Session tokens
    TOKEN_TTL_DAYS: int = int(os.getenv("TOKEN_TTL_DAYS", "7"))
    TOKEN_SWEEP_INTERVAL_SECONDS: int = int(os.getenv("TOKEN_SWEEP_INTERVAL_SECONDS", "3600"))
    TOKEN_SWEEP_ENABLED: bool = os.getenv("TOKEN_SWEEP_ENABLED", "true").lower() == "true"

    # Upload
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    PROFILE_DIR: str = os.getenv("PROFILE_DIR", "profile")
    MAX_IMAGE_SIZE_BYTES: int = int(os.getenv("MAX_IMAGE_SIZE_BYTES", str(2 * 1024 * 1024)))

    # Mail
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    MAIL_FROM: str = os.getenv("MAIL_FROM", "My App <info@myapp.com>")
    CLIENT_BASE_URL: str = os.getenv("CLIENT_BASE_URL", "http://localhost:8080")

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if not self.SMTP_HOST:
            errors.append("SMTP_HOST is not set - emails will only be written to the log")
        if self.TOKEN_TTL_DAYS < 1:
            errors.append("TOKEN_TTL_DAYS must be at least 1")
        if self.TOKEN_SWEEP_INTERVAL_SECONDS < 1:
            errors.append("TOKEN_SWEEP_INTERVAL_SECONDS must be at least 1")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
