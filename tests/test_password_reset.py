"""Tests for the password reset service."""

import re
from datetime import timedelta

import pytest
from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.clock import utcnow
from app.errors import InvalidOrExpiredToken
from app.models.password_reset import PasswordResetToken
from app.services.events import PasswordWasReset
from app.services.password_reset import PasswordResetService, ResetStatus
from app.services.passwords import get_password_hasher

RESET_URL = re.compile(r"/password-reset/([0-9a-f]+)\?email=")


def _token_from(message) -> str:
    match = RESET_URL.search(message.text)
    assert match, message.text
    return match.group(1)


@pytest.fixture(name="service")
def service_fixture() -> PasswordResetService:
    service = PasswordResetService()
    service.throttle_seconds = 0
    return service


class TestRequestReset:
    """Tests for issuing reset links."""

    def test_link_sent_and_record_hashed(self, db_session: Session, test_user: dict, outbox, service):
        """A reset record is stored hashed and the raw token is mailed."""
        outbox.messages.clear()
        status = service.request_reset(db_session, "test@example.com")
        assert status is ResetStatus.RESET_LINK_SENT

        assert len(outbox.messages) == 1
        message = outbox.messages[0]
        assert message.to == "test@example.com"
        assert message.subject == "Reset Password Notification"
        assert "http://frontend.test/password-reset/" in message.text
        assert "email=test%40example.com" in message.text

        token = _token_from(message)
        record = db_session.get(PasswordResetToken, "test@example.com")
        assert record.token != token
        assert get_password_hasher().verify(token, record.token)

    def test_unknown_email_looks_like_success(self, db_session: Session, outbox, service):
        """Unknown addresses get the generic status and no mail."""
        status = service.request_reset(db_session, "nobody@example.com")
        assert status is ResetStatus.RESET_LINK_SENT
        assert outbox.messages == []
        assert db_session.get(PasswordResetToken, "nobody@example.com") is None

    def test_unknown_email_revealed_when_configured(self, db_session: Session, outbox, service):
        service.reveal_unknown_email = True
        assert service.request_reset(db_session, "nobody@example.com") is ResetStatus.INVALID_USER

    def test_new_request_supersedes_old(self, db_session: Session, test_user: dict, outbox, service):
        """Only the most recent token for an email is accepted."""
        outbox.messages.clear()
        service.request_reset(db_session, "test@example.com")
        service.request_reset(db_session, "test@example.com")
        first, second = (_token_from(m) for m in outbox.messages)

        assert db_session.query(PasswordResetToken).count() == 1
        new_hash = get_password_hasher().hash("BrandNew!234")
        with pytest.raises(InvalidOrExpiredToken):
            service.perform_reset(db_session, "test@example.com", first, new_hash)
        assert service.perform_reset(db_session, "test@example.com", second, new_hash) is ResetStatus.PASSWORD_RESET

    def test_throttled_looks_like_success(self, db_session: Session, test_user: dict, outbox):
        """A second request inside the window sends nothing but reports the generic status."""
        service = PasswordResetService()
        service.throttle_seconds = 60
        outbox.messages.clear()
        assert service.request_reset(db_session, "test@example.com") is ResetStatus.RESET_LINK_SENT
        first_record = db_session.get(PasswordResetToken, "test@example.com").token

        assert service.request_reset(db_session, "test@example.com") is ResetStatus.RESET_LINK_SENT
        assert len(outbox.messages) == 1
        assert db_session.get(PasswordResetToken, "test@example.com").token == first_record

    def test_throttled_revealed_when_configured(self, db_session: Session, test_user: dict, outbox):
        service = PasswordResetService()
        service.throttle_seconds = 60
        service.reveal_unknown_email = True
        assert service.request_reset(db_session, "test@example.com") is ResetStatus.RESET_LINK_SENT
        assert service.request_reset(db_session, "test@example.com") is ResetStatus.RESET_THROTTLED

    def test_throttle_window_passes(self, db_session: Session, test_user: dict, outbox):
        service = PasswordResetService()
        service.throttle_seconds = 60
        service.request_reset(db_session, "test@example.com")
        record = db_session.get(PasswordResetToken, "test@example.com")
        record.created_at = utcnow() - timedelta(seconds=61)
        db_session.commit()
        assert service.request_reset(db_session, "test@example.com") is ResetStatus.RESET_LINK_SENT


class TestPerformReset:
    """Tests for consuming reset tokens."""

    def _request(self, db_session, outbox, service) -> str:
        outbox.messages.clear()
        service.request_reset(db_session, "test@example.com")
        return _token_from(outbox.messages[-1])

    def test_reset_changes_password(self, db_session: Session, test_user: dict, outbox, service):
        """The new password verifies and the old one no longer does."""
        token = self._request(db_session, outbox, service)
        hasher = get_password_hasher()

        service.perform_reset(db_session, "test@example.com", token, hasher.hash("BrandNew!234"))

        user = test_user["user"]
        db_session.refresh(user)
        assert hasher.verify("BrandNew!234", user.password_hash)
        assert not hasher.verify(test_user["password"], user.password_hash)

    def test_token_is_single_use(self, db_session: Session, test_user: dict, outbox, service):
        token = self._request(db_session, outbox, service)
        new_hash = get_password_hasher().hash("BrandNew!234")
        service.perform_reset(db_session, "test@example.com", token, new_hash)

        assert db_session.get(PasswordResetToken, "test@example.com") is None
        with pytest.raises(InvalidOrExpiredToken):
            service.perform_reset(db_session, "test@example.com", token, new_hash)

    def test_wrong_token(self, db_session: Session, test_user: dict, outbox, service):
        self._request(db_session, outbox, service)
        with pytest.raises(InvalidOrExpiredToken):
            service.perform_reset(db_session, "test@example.com", "0" * 64, "hash")

    def test_expired_token(self, db_session: Session, test_user: dict, outbox, service):
        token = self._request(db_session, outbox, service)
        record = db_session.get(PasswordResetToken, "test@example.com")
        record.created_at = utcnow() - timedelta(minutes=service.expire_minutes + 1)
        db_session.commit()

        with pytest.raises(InvalidOrExpiredToken):
            service.perform_reset(db_session, "test@example.com", token, "hash")

    def test_email_mismatch(self, db_session: Session, test_user: dict, outbox, service):
        """A valid token is useless under a different address."""
        token = self._request(db_session, outbox, service)
        with pytest.raises(InvalidOrExpiredToken):
            service.perform_reset(db_session, "other@example.com", token, "hash")

    def test_failures_share_one_message(self, db_session: Session, test_user: dict, outbox, service):
        """Callers cannot tell which check failed."""
        token = self._request(db_session, outbox, service)
        messages = set()
        for email, candidate in (("nobody@example.com", token), ("test@example.com", "f" * 64)):
            with pytest.raises(InvalidOrExpiredToken) as exc_info:
                service.perform_reset(db_session, email, candidate, "hash")
            messages.add(exc_info.value.message)
        assert messages == {"This password reset token is invalid."}

    def test_record_consumed_concurrently(
        self, db_session: Session, test_user: dict, outbox, service, monkeypatch
    ):
        """If another reset consumes the record after our token check, this one fails."""
        token = self._request(db_session, outbox, service)
        user = test_user["user"]
        old_hash = user.password_hash
        hasher = get_password_hasher()
        check = hasher.verify

        def verify_then_lose_race(plaintext: str, hashed: str) -> bool:
            matched = check(plaintext, hashed)
            db_session.execute(delete(PasswordResetToken).where(PasswordResetToken.email == "test@example.com"))
            return matched

        monkeypatch.setattr(hasher, "verify", verify_then_lose_race)
        with pytest.raises(InvalidOrExpiredToken):
            service.perform_reset(db_session, "test@example.com", token, hasher.hash("BrandNew!234"))

        db_session.refresh(user)
        assert user.password_hash == old_hash

    def test_event_dispatched(self, db_session: Session, test_user: dict, outbox, service, dispatcher):
        seen = []
        dispatcher.listen(PasswordWasReset, lambda event: seen.append(event.user.email))
        token = self._request(db_session, outbox, service)
        service.perform_reset(db_session, "test@example.com", token, get_password_hasher().hash("BrandNew!234"))
        assert seen == ["test@example.com"]

    def test_delete_expired(self, db_session: Session, test_user: dict, outbox, service):
        self._request(db_session, outbox, service)
        record = db_session.get(PasswordResetToken, "test@example.com")
        record.created_at = utcnow() - timedelta(minutes=service.expire_minutes + 5)
        db_session.commit()
        assert service.delete_expired(db_session) == 1
