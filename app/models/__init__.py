"""SQLAlchemy models."""

from app.models.access_token import PersonalAccessToken
from app.models.password_reset import PasswordResetToken
from app.models.user import User

__all__ = ["User", "PersonalAccessToken", "PasswordResetToken"]
