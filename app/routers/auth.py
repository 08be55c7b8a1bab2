"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import CurrentAccess, client_label, get_current_access, get_optional_access
from app.rate_limit import limiter
from app.schemas.auth import (
    AccessTokenResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OkResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenListResponse,
    UserEnvelope,
    UserResponse,
    VerificationNotificationRequest,
    VerifyEmailRequiredResponse,
)
from app.services.auth import VERIFY_EMAIL_MESSAGE, get_auth_service

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit("5/minute")
def register(request: Request, body: RegisterRequest, db: Session = Depends(get_db)) -> RegisterResponse:
    """Register a new user account."""
    user = get_auth_service().register(db, body.name, body.email, body.password)
    return RegisterResponse(must_verify_email=user.must_verify_email)


@router.post("/login", response_model=LoginResponse | VerifyEmailRequiredResponse)
@limiter.limit("5/minute")
def login(
    request: Request, body: LoginRequest, db: Session = Depends(get_db)
) -> LoginResponse | VerifyEmailRequiredResponse:
    """Authenticate and receive a bearer token."""
    result = get_auth_service().login(db, body.email, body.password, client_label(request), remember=body.remember)

    if result.must_verify_email:
        return VerifyEmailRequiredResponse(message=VERIFY_EMAIL_MESSAGE)

    return LoginResponse(user=UserResponse.model_validate(result.user), token=result.token)  # type: ignore[arg-type]


@router.post("/logout", response_model=OkResponse)
def logout(access: CurrentAccess | None = Depends(get_optional_access), db: Session = Depends(get_db)) -> OkResponse:
    """Revoke the token used for this request. Other sessions stay signed in."""
    get_auth_service().logout(db, access.token if access else None)
    return OkResponse()


@router.get("/user", response_model=UserEnvelope)
def current_user(access: CurrentAccess = Depends(get_current_access)) -> UserEnvelope:
    """Return the authenticated user."""
    return UserEnvelope(user=UserResponse.model_validate(access.user))


@router.get("/tokens", response_model=TokenListResponse)
def list_tokens(access: CurrentAccess = Depends(get_current_access), db: Session = Depends(get_db)) -> TokenListResponse:
    """List the caller's active sessions."""
    tokens = get_auth_service().sessions(db, access.user)
    items = []
    for token in tokens:
        item = AccessTokenResponse.model_validate(token)
        item.current = token.id == access.token.id
        items.append(item)
    return TokenListResponse(tokens=items)


@router.post("/password/email", response_model=MessageResponse)
@limiter.limit("3/minute")
def forgot_password(request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Email a password reset link."""
    status = get_auth_service().send_reset_link(db, body.email)
    return MessageResponse(message=status.message)


@router.post("/password/reset", response_model=MessageResponse)
@limiter.limit("5/minute")
def reset_password(request: Request, body: ResetPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Set a new password using an emailed reset token."""
    status = get_auth_service().reset_password(db, body.email, body.token, body.password)
    return MessageResponse(message=status.message)


@router.get("/verify/{user_id}/{signature}", response_model=OkResponse)
@limiter.limit("6/minute")
def verify_email(request: Request, user_id: str, signature: str, db: Session = Depends(get_db)) -> OkResponse:
    """Confirm an email address from a verification link."""
    get_auth_service().verify_email(db, user_id, signature)
    return OkResponse()


@router.post("/email/verification-notification", response_model=MessageResponse)
@limiter.limit("6/minute")
def verification_notification(
    request: Request, body: VerificationNotificationRequest, db: Session = Depends(get_db)
) -> MessageResponse:
    """Re-send the verification link to an unverified address."""
    get_auth_service().resend_verification(db, body.email)
    return MessageResponse(message="Verification link sent!")
