"""Authentication service.

Orchestrates the register, login, logout, password reset and email
verification flows over the user store, hasher, token issuer and link
services. Each call is independent; all state lives in the database.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session

from app.config import get_settings
from app.errors import (
    AuthenticationFailed,
    AuthError,
    DuplicateEmail,
    InvalidOrExpiredToken,
    ValidationError,
)
from app.models.access_token import PersonalAccessToken
from app.models.user import User
from app.services.events import EventDispatcher, UserRegistered, get_event_dispatcher
from app.services.password_reset import ResetStatus, get_password_reset_service
from app.services.passwords import get_password_hasher
from app.services.tokens import get_token_issuer
from app.services.users import get_user_store
from app.services.verification import get_verification_service

logger = logging.getLogger("authgate.auth")

VERIFY_EMAIL_MESSAGE = "Please confirm your email address"


@dataclass
class LoginResult:
    """Result of a login attempt that passed the credential check."""

    user: User
    token: str | None = None
    token_id: int | None = None
    must_verify_email: bool = False


class AuthService:
    """Handles the account lifecycle flows."""

    def register(self, db: Session, name: str, email: str, password: str) -> User:
        """Create an account. Raises ValidationError if the email is taken."""
        password_hash = get_password_hasher().hash(password)
        try:
            user = get_user_store().create(db, name, email, password_hash)
        except DuplicateEmail as exc:
            raise ValidationError.for_field("email", exc.message) from None

        get_event_dispatcher().dispatch(UserRegistered(user=user))
        return user

    def login(self, db: Session, email: str, password: str, client_label: str, remember: bool = False) -> LoginResult:
        """Check credentials and issue a bearer token.

        Unverified users (when verification is required) get a result with
        ``must_verify_email`` set and no token. Raises AuthenticationFailed.
        """
        hasher = get_password_hasher()
        user = get_user_store().find_by_email(db, email)
        if user is None:
            hasher.burn(password)
            raise AuthenticationFailed()
        if not hasher.verify(password, user.password_hash):
            raise AuthenticationFailed()

        if user.must_verify_email:
            logger.info("Login refused for unverified user %s", user.ulid)
            return LoginResult(user=user, must_verify_email=True)

        settings = get_settings()
        ttl = timedelta(days=settings.TOKEN_REMEMBER_TTL_DAYS if remember else settings.TOKEN_TTL_DAYS)
        token_id, token = get_token_issuer().issue(db, user, client_label, ttl)
        return LoginResult(user=user, token=token, token_id=token_id)

    def logout(self, db: Session, token: PersonalAccessToken | None) -> None:
        """Revoke the presented token only. Missing tokens are a no-op."""
        if token is None:
            return
        get_token_issuer().revoke(db, token.id)

    def sessions(self, db: Session, user: User) -> list[PersonalAccessToken]:
        return get_token_issuer().tokens_for_user(db, user)

    def send_reset_link(self, db: Session, email: str) -> ResetStatus:
        """Request a reset link. Raises ValidationError unless the link was (or appears) sent."""
        status = get_password_reset_service().request_reset(db, email)
        if status is not ResetStatus.RESET_LINK_SENT:
            raise ValidationError.for_field("email", status.message)
        return status

    def reset_password(self, db: Session, email: str, token: str, password: str) -> ResetStatus:
        """Consume a reset token and set the new password."""
        password_hash = get_password_hasher().hash(password)
        try:
            return get_password_reset_service().perform_reset(db, email, token, password_hash)
        except InvalidOrExpiredToken as exc:
            raise ValidationError.for_field("email", exc.message) from None

    def verify_email(self, db: Session, user_id: str, signature: str) -> bool:
        return get_verification_service().confirm(db, user_id, signature)

    def resend_verification(self, db: Session, email: str) -> None:
        """Re-send the verification link to an existing, unverified user."""
        user = get_user_store().find_by_email(db, email)
        if user is None or user.has_verified_email:
            raise AuthError("Unable to send a verification link to this address.")
        get_verification_service().send_notification(user)


def send_verification_on_register(event: UserRegistered) -> None:
    if event.user.must_verify_email:
        get_verification_service().send_notification(event.user)


def register_listeners(dispatcher: EventDispatcher) -> None:
    """Attach the default listeners, replacing any earlier registration."""
    dispatcher.forget(UserRegistered)
    dispatcher.listen(UserRegistered, send_verification_on_register)


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
