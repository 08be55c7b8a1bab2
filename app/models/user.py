"""User model."""

import ulid
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.clock import utcnow
from app.config import get_settings
from app.database import Base


def new_ulid() -> str:
    return str(ulid.ULID())


class User(Base):
    """Registered account."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ulid = Column(String(26), unique=True, nullable=False, index=True, default=new_ulid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    avatar = Column(String(512), nullable=True)
    email_verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    tokens = relationship(
        "PersonalAccessToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def has_verified_email(self) -> bool:
        return self.email_verified_at is not None

    @property
    def must_verify_email(self) -> bool:
        """True while verification is required and still outstanding."""
        return get_settings().MUST_VERIFY_EMAIL and not self.has_verified_email

    def __repr__(self) -> str:
        return f"<User {self.ulid} {self.email}>"
