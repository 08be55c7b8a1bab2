"""Password reset record model."""

from sqlalchemy import Column, DateTime, String

from app.clock import utcnow
from app.database import Base


class PasswordResetToken(Base):
    """Pending password reset. One row per email; a new request replaces the old one."""

    __tablename__ = "password_reset_tokens"

    email = Column(String(255), primary_key=True)
    token = Column(String(255), nullable=False)  # bcrypt hash of the emailed token
    created_at = Column(DateTime, nullable=False, default=utcnow)
