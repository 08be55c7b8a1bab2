"""Email verification links."""

import hashlib
import hmac
import logging

from sqlalchemy.orm import Session

from app.clock import utcnow
from app.config import get_settings
from app.errors import InvalidSignature, NotFound
from app.models.user import User
from app.services.events import EmailVerified, get_event_dispatcher
from app.services.mailer import get_mailer
from app.services.users import get_user_store

logger = logging.getLogger("authgate.verification")


class EmailVerificationService:
    """Builds and checks ``/verify/{ulid}/{signature}`` links.

    The signature is HMAC-SHA256 of the user's email under APP_KEY. It is
    deterministic, so a link keeps working until the address is verified and
    stops mattering once ``email_verified_at`` is set.
    """

    def signature(self, user: User) -> str:
        key = get_settings().APP_KEY.encode("utf-8")
        return hmac.new(key, user.email.encode("utf-8"), hashlib.sha256).hexdigest()

    def build_link(self, user: User) -> str:
        base_url = get_settings().FRONTEND_URL.rstrip("/")
        return f"{base_url}/verify/{user.ulid}/{self.signature(user)}"

    def send_notification(self, user: User) -> None:
        """Mail the verification link to the user."""
        get_mailer().send_template(
            "verify_email",
            to=user.email,
            subject="Verify Email Address",
            context={"name": user.name, "url": self.build_link(user)},
        )
        logger.info("Verification link queued for user %s", user.ulid)

    def confirm(self, db: Session, user_id: str, signature: str) -> bool:
        """Mark the user's email verified.

        Returns True if this call changed the user, False if the email was
        already verified. Raises NotFound or InvalidSignature.
        """
        user = get_user_store().find_by_id(db, user_id)
        if user is None:
            raise NotFound()
        if not hmac.compare_digest(self.signature(user).encode("utf-8"), signature.encode("utf-8")):
            raise InvalidSignature()

        if user.has_verified_email:
            return False

        # Conditional update keeps the first timestamp if two confirmations race
        updated = (
            db.query(User)
            .filter(User.id == user.id, User.email_verified_at.is_(None))
            .update({User.email_verified_at: utcnow()}, synchronize_session=False)
        )
        db.commit()
        if not updated:
            return False
        db.refresh(user)
        logger.info("Email verified for user %s", user.ulid)
        get_event_dispatcher().dispatch(EmailVerified(user=user))
        return True


_verification_service: EmailVerificationService | None = None


def get_verification_service() -> EmailVerificationService:
    """Get singleton verification service instance."""
    global _verification_service
    if _verification_service is None:
        _verification_service = EmailVerificationService()
    return _verification_service
