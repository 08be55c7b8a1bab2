"""Personal access token issuance and resolution.

Plaintext tokens look like ``<id>|<secret>``. The id locates the row; only
SHA-256(secret) is stored, so the plaintext is shown to the client once and
cannot be recovered from the database.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from app.clock import utcnow
from app.errors import InvalidOrExpiredToken
from app.models.access_token import PersonalAccessToken
from app.models.user import User

logger = logging.getLogger("authgate.tokens")

_SECRET_BYTES = 30  # 40 url-safe characters
_MAX_TOKEN_ID = 2**63 - 1  # signed 64-bit INTEGER column


def _digest(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


class TokenIssuer:
    """Issues, resolves and revokes bearer tokens."""

    def issue(
        self,
        db: Session,
        user: User,
        client_label: str,
        ttl: timedelta | None,
        abilities: list[str] | None = None,
    ) -> tuple[int, str]:
        """Create a token for the user. Returns (token_id, plaintext_token)."""
        secret = secrets.token_urlsafe(_SECRET_BYTES)
        record = PersonalAccessToken(
            user_id=user.id,
            name=client_label[:255],
            token=_digest(secret),
            abilities=abilities or ["*"],
            expires_at=utcnow() + ttl if ttl is not None else None,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        logger.info("Issued token %d for user %s", record.id, user.ulid)
        return record.id, f"{record.id}|{secret}"

    def resolve(self, db: Session, plaintext: str) -> tuple[User, PersonalAccessToken]:
        """Map a presented token to its user. Raises InvalidOrExpiredToken."""
        record = self._find(db, plaintext)
        if record is None or record.is_expired():
            raise InvalidOrExpiredToken("Invalid or expired token.")

        record.last_used_at = utcnow()
        db.commit()
        return record.user, record

    def revoke(self, db: Session, token_id: int) -> bool:
        """Delete a single token. Returns False if it was already gone."""
        deleted = db.query(PersonalAccessToken).filter(PersonalAccessToken.id == token_id).delete()
        db.commit()
        if deleted:
            logger.info("Revoked token %d", token_id)
        return bool(deleted)

    def tokens_for_user(self, db: Session, user: User, include_expired: bool = False) -> list[PersonalAccessToken]:
        """List a user's tokens, newest first."""
        query = db.query(PersonalAccessToken).filter(PersonalAccessToken.user_id == user.id)
        if not include_expired:
            query = query.filter(
                (PersonalAccessToken.expires_at.is_(None)) | (PersonalAccessToken.expires_at > utcnow())
            )
        return query.order_by(PersonalAccessToken.id.desc()).all()

    def prune_expired(self, db: Session) -> int:
        """Delete every token past its expiry. Returns the number removed."""
        deleted = (
            db.query(PersonalAccessToken)
            .filter(PersonalAccessToken.expires_at.is_not(None), PersonalAccessToken.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        if deleted:
            logger.info("Pruned %d expired tokens", deleted)
        return deleted

    def _find(self, db: Session, plaintext: str) -> PersonalAccessToken | None:
        if "|" not in plaintext:
            return db.query(PersonalAccessToken).filter(PersonalAccessToken.token == _digest(plaintext)).first()

        token_id, _, secret = plaintext.partition("|")
        if not token_id.isdecimal() or not secret or int(token_id) > _MAX_TOKEN_ID:
            return None
        record = db.get(PersonalAccessToken, int(token_id))
        if record is None or not hmac.compare_digest(record.token, _digest(secret)):
            return None
        return record


_token_issuer: TokenIssuer | None = None


def get_token_issuer() -> TokenIssuer:
    """Get singleton token issuer instance."""
    global _token_issuer
    if _token_issuer is None:
        _token_issuer = TokenIssuer()
    return _token_issuer
