"""Error kinds raised by the auth services.

Each maps to a JSON body ``{"ok": false, "message": ...}`` via the handler
registered in ``main.py``.
"""


class AuthError(Exception):
    """Base class for errors surfaced to the API caller."""

    status_code = 400
    default_message = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"ok": False, "message": self.message}


class ValidationError(AuthError):
    """Malformed, missing or conflicting input, with per-field messages."""

    status_code = 422
    default_message = "The given data was invalid."

    def __init__(self, errors: dict[str, list[str]], message: str | None = None) -> None:
        self.errors = errors
        if message is None:
            # Top-level message is the first field message
            first = next((msgs[0] for msgs in errors.values() if msgs), None)
            message = first
        super().__init__(message)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})

    def to_dict(self) -> dict:
        return {"ok": False, "message": self.message, "errors": self.errors}


class DuplicateEmail(AuthError):
    """Raised by the user store when the unique email constraint rejects an insert."""

    status_code = 422
    default_message = "The email has already been taken."


class AuthenticationFailed(AuthError):
    status_code = 401
    default_message = "These credentials do not match our records."


class InvalidOrExpiredToken(AuthError):
    status_code = 422
    default_message = "This password reset token is invalid."


class NotFound(AuthError):
    status_code = 404
    default_message = "Not found."


class InvalidSignature(AuthError):
    status_code = 403
    default_message = "Invalid verification link"


class Unauthorized(AuthError):
    status_code = 401
    default_message = "Unauthenticated."
