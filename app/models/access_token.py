"""Personal access token model."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.clock import utcnow
from app.database import Base


class PersonalAccessToken(Base):
    """Bearer token issued at login. Only a SHA-256 digest of the secret is stored."""

    __tablename__ = "personal_access_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)  # client label, usually the User-Agent
    token = Column(String(64), unique=True, nullable=False)
    abilities = Column(JSON, nullable=False, default=lambda: ["*"])
    last_used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="tokens")

    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= utcnow()
