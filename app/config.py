"""Configuration settings for Authgate."""

import os
import secrets
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./authgate.db")

    # Application
    APP_NAME: str = os.getenv("APP_NAME", "Authgate")
    APP_ENV: str = os.getenv("APP_ENV", "development")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    DEBUG: bool = _env_bool("DEBUG", "false")

    # Signing key for verification links
    APP_KEY: str = os.getenv("APP_KEY", "")

    # Hashing
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Access tokens
    TOKEN_TTL_DAYS: int = int(os.getenv("TOKEN_TTL_DAYS", "1"))
    TOKEN_REMEMBER_TTL_DAYS: int = int(os.getenv("TOKEN_REMEMBER_TTL_DAYS", "30"))

    # Email verification
    MUST_VERIFY_EMAIL: bool = _env_bool("MUST_VERIFY_EMAIL", "true")

    # Password reset
    PASSWORD_RESET_EXPIRE_MINUTES: int = int(os.getenv("PASSWORD_RESET_EXPIRE_MINUTES", "60"))
    PASSWORD_RESET_THROTTLE_SECONDS: int = int(os.getenv("PASSWORD_RESET_THROTTLE_SECONDS", "60"))
    PASSWORD_RESET_REVEAL_UNKNOWN_EMAIL: bool = _env_bool("PASSWORD_RESET_REVEAL_UNKNOWN_EMAIL", "false")

    # Mail
    MAIL_TRANSPORT: str = os.getenv("MAIL_TRANSPORT", "log")  # log, smtp
    MAIL_HOST: str = os.getenv("MAIL_HOST", "localhost")
    MAIL_PORT: int = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME: str = os.getenv("MAIL_USERNAME", "")
    MAIL_PASSWORD: str = os.getenv("MAIL_PASSWORD", "")
    MAIL_FROM_ADDRESS: str = os.getenv("MAIL_FROM_ADDRESS", "no-reply@example.com")
    MAIL_FROM_NAME: str = os.getenv("MAIL_FROM_NAME", APP_NAME)

    def __init__(self) -> None:
        self._generated_key = not self.APP_KEY
        if self._generated_key:
            self.APP_KEY = secrets.token_urlsafe(32)

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        warnings = []
        if self._generated_key:
            warnings.append("APP_KEY is not set - using auto-generated key (verification links break on restart)")
        if self.MAIL_TRANSPORT not in ("log", "smtp"):
            warnings.append(f"Unknown MAIL_TRANSPORT '{self.MAIL_TRANSPORT}' - falling back to log")
        if self.BCRYPT_ROUNDS < 10 and self.APP_ENV == "production":
            warnings.append("BCRYPT_ROUNDS below 10 in production")
        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
