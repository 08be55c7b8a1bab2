"""User persistence."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import DuplicateEmail
from app.models.user import User

logger = logging.getLogger("authgate.users")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    """Creates and looks up users.

    Email uniqueness is left to the unique index on ``users.email``; ``create``
    turns the resulting IntegrityError into DuplicateEmail, so two concurrent
    registrations cannot both succeed.
    """

    def create(self, db: Session, name: str, email: str, password_hash: str) -> User:
        """Insert a new user. Raises DuplicateEmail if the email is taken."""
        user = User(name=name.strip(), email=normalize_email(email), password_hash=password_hash)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateEmail() from None
        db.refresh(user)
        logger.info("Created user %s", user.ulid)
        return user

    def find_by_email(self, db: Session, email: str) -> User | None:
        return db.query(User).filter(User.email == normalize_email(email)).first()

    def find_by_id(self, db: Session, user_id: str) -> User | None:
        """Look up a user by external (ULID) identifier."""
        return db.query(User).filter(User.ulid == user_id).first()

    def update(self, db: Session, user: User) -> User:
        db.add(user)
        db.commit()
        db.refresh(user)
        return user


_user_store: UserStore | None = None


def get_user_store() -> UserStore:
    """Get singleton user store instance."""
    global _user_store
    if _user_store is None:
        _user_store = UserStore()
    return _user_store
