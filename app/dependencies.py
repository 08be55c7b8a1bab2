"""Authentication dependencies for FastAPI routes."""

from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import InvalidOrExpiredToken, Unauthorized
from app.models.access_token import PersonalAccessToken
from app.models.user import User
from app.services.tokens import get_token_issuer


@dataclass
class CurrentAccess:
    """The authenticated user and the token they presented."""

    user: User
    token: PersonalAccessToken


def bearer_token(request: Request) -> str | None:
    """Return the token from an ``Authorization: Bearer`` header, if any."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_optional_access(request: Request, db: Session = Depends(get_db)) -> CurrentAccess | None:
    """Resolve the bearer token, returning None when it is missing or invalid."""
    token = bearer_token(request)
    if not token:
        return None
    try:
        user, record = get_token_issuer().resolve(db, token)
    except InvalidOrExpiredToken:
        return None
    return CurrentAccess(user=user, token=record)


def get_current_access(access: CurrentAccess | None = Depends(get_optional_access)) -> CurrentAccess:
    """Require a valid bearer token. Raises 401 otherwise."""
    if access is None:
        raise Unauthorized()
    return access


def client_label(request: Request) -> str:
    """Label for a new token: the caller's User-Agent."""
    return request.headers.get("User-Agent") or "unknown"
