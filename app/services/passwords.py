"""Password hashing service."""

import bcrypt

from app.config import get_settings

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72  # bcrypt ignores (or rejects) anything past this


class PasswordHasher:
    """One-way salted hashing with bcrypt.

    Every call to ``hash`` draws a fresh salt, so two hashes of the same
    password never compare equal. Use ``verify`` for comparisons.
    """

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds or get_settings().BCRYPT_ROUNDS
        self._dummy_hash: str | None = None

    def hash(self, plaintext: str) -> str:
        """Return a bcrypt hash of the plaintext."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Return True if the plaintext matches the stored hash."""
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Over-long input or a malformed stored hash
            return False

    def burn(self, plaintext: str) -> None:
        """Run a verify against a throwaway hash so a miss costs as much as a hit."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("authgate-timing-dummy")
        self.verify(plaintext, self._dummy_hash)


def password_policy_errors(password: str) -> list[str]:
    """Check a new password against the registration policy."""
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"The password field must be at least {MIN_PASSWORD_LENGTH} characters.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(f"The password field must not be greater than {MAX_PASSWORD_BYTES} bytes.")
    return errors


_password_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Get singleton password hasher instance."""
    global _password_hasher
    if _password_hasher is None:
        _password_hasher = PasswordHasher()
    return _password_hasher
