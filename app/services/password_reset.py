"""Password reset links."""

import enum
import logging
import secrets
from datetime import timedelta
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.clock import utcnow
from app.config import get_settings
from app.errors import InvalidOrExpiredToken
from app.models.password_reset import PasswordResetToken
from app.services.events import PasswordWasReset, get_event_dispatcher
from app.services.mailer import get_mailer
from app.services.passwords import get_password_hasher
from app.services.users import get_user_store, normalize_email

logger = logging.getLogger("authgate.password_reset")


class ResetStatus(enum.Enum):
    """Outcome of a reset request, with the message shown to the caller."""

    RESET_LINK_SENT = "We have emailed your password reset link."
    PASSWORD_RESET = "Your password has been reset."
    INVALID_USER = "We can't find a user with that email address."
    INVALID_TOKEN = "This password reset token is invalid."
    RESET_THROTTLED = "Please wait before retrying."

    @property
    def message(self) -> str:
        return self.value


class PasswordResetService:
    """Issues single-use reset tokens keyed by email and consumes them."""

    def __init__(self) -> None:
        settings = get_settings()
        self.expire_minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES
        self.throttle_seconds = settings.PASSWORD_RESET_THROTTLE_SECONDS
        self.reveal_unknown_email = settings.PASSWORD_RESET_REVEAL_UNKNOWN_EMAIL

    def request_reset(self, db: Session, email: str) -> ResetStatus:
        """Create a reset record for the email and mail the link.

        Unknown and throttled emails get RESET_LINK_SENT as well, without
        any mail, unless PASSWORD_RESET_REVEAL_UNKNOWN_EMAIL is enabled.
        """
        email = normalize_email(email)
        user = get_user_store().find_by_email(db, email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return ResetStatus.INVALID_USER if self.reveal_unknown_email else ResetStatus.RESET_LINK_SENT

        existing = db.get(PasswordResetToken, email)
        if existing is not None and self._recently_created(existing):
            return self._throttled()

        token = secrets.token_hex(32)
        if existing is not None:
            db.delete(existing)
            db.flush()
        db.add(PasswordResetToken(email=email, token=get_password_hasher().hash(token), created_at=utcnow()))
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request for the same email won the insert
            db.rollback()
            return self._throttled()

        query = urlencode({"email": email})
        url = f"{get_settings().FRONTEND_URL.rstrip('/')}/password-reset/{token}?{query}"
        get_mailer().send_template(
            "reset_password",
            to=email,
            subject="Reset Password Notification",
            context={"name": user.name, "url": url, "expire_minutes": self.expire_minutes},
        )
        logger.info("Password reset link queued for user %s", user.ulid)
        return ResetStatus.RESET_LINK_SENT

    def perform_reset(self, db: Session, email: str, token: str, new_password_hash: str) -> ResetStatus:
        """Swap in the new password hash and consume the reset record.

        Raises InvalidOrExpiredToken for an unknown user, a missing or expired
        record, or a token mismatch, without saying which.
        """
        email = normalize_email(email)
        user = get_user_store().find_by_email(db, email)
        record = db.get(PasswordResetToken, email)
        if user is None or record is None or self._expired(record):
            raise InvalidOrExpiredToken()
        if not get_password_hasher().verify(token, record.token):
            raise InvalidOrExpiredToken()

        # Only the request that deletes the record it verified may set the password
        consumed = (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.email == email, PasswordResetToken.token == record.token)
            .delete()
        )
        if not consumed:
            db.rollback()
            raise InvalidOrExpiredToken()

        user.password_hash = new_password_hash
        get_user_store().update(db, user)
        logger.info("Password reset for user %s", user.ulid)
        get_event_dispatcher().dispatch(PasswordWasReset(user=user))
        return ResetStatus.PASSWORD_RESET

    def delete_expired(self, db: Session) -> int:
        cutoff = utcnow() - timedelta(minutes=self.expire_minutes)
        deleted = db.query(PasswordResetToken).filter(PasswordResetToken.created_at < cutoff).delete()
        db.commit()
        return deleted

    def _expired(self, record: PasswordResetToken) -> bool:
        return record.created_at + timedelta(minutes=self.expire_minutes) <= utcnow()

    def _throttled(self) -> ResetStatus:
        if self.reveal_unknown_email:
            return ResetStatus.RESET_THROTTLED
        logger.info("Password reset throttled")
        return ResetStatus.RESET_LINK_SENT

    def _recently_created(self, record: PasswordResetToken) -> bool:
        if self.throttle_seconds <= 0:
            return False
        return record.created_at + timedelta(seconds=self.throttle_seconds) > utcnow()


_password_reset_service: PasswordResetService | None = None


def get_password_reset_service() -> PasswordResetService:
    """Get singleton password reset service instance."""
    global _password_reset_service
    if _password_reset_service is None:
        _password_reset_service = PasswordResetService()
    return _password_reset_service
