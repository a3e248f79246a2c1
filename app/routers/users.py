"""User account API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import CurrentUser, clear_auth_cookie, get_current_user, issue_session
from app.rate_limit import limiter
from app.schemas.user import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    MessageResponse,
    ProfileUpdateRequest,
    ResetPasswordRequest,
    SigninRequest,
    SignupRequest,
    UserEnvelope,
    UserResponse,
)
from app.services.account import AccountResult, ErrorKind, get_account_service

logger = logging.getLogger("learnhub")

router = APIRouter(prefix="/api/v1/users", tags=["Users"])

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.AUTH: 401,
    ErrorKind.NOT_FOUND: 404,
}


def raise_for_result(result: AccountResult) -> None:
    """Translate a failed account result into an HTTP error."""
    if not result.success:
        raise HTTPException(status_code=ERROR_STATUS.get(result.error_kind, 400), detail=result.error)


def _user_envelope(result: AccountResult, message: str) -> UserEnvelope:
    return UserEnvelope(message=message, data=UserResponse.model_validate(result.user))


@router.post("/signup", response_model=UserEnvelope, status_code=201)
@limiter.limit("5/minute")
def signup(request: Request, response: Response, body: SignupRequest, db: Session = Depends(get_db)) -> UserEnvelope:
    """Create a user account and start a session."""
    result = get_account_service().create_account(db, body.name, body.email, body.password, body.role)
    raise_for_result(result)

    issue_session(response, result.user)  # type: ignore[arg-type]
    return _user_envelope(result, "User created successfully")


@router.post("/signin", response_model=UserEnvelope)
@limiter.limit("10/minute")
def signin(request: Request, response: Response, body: SigninRequest, db: Session = Depends(get_db)) -> UserEnvelope:
    """Authenticate and start a session."""
    result = get_account_service().authenticate(db, body.email, body.password)
    raise_for_result(result)

    issue_session(response, result.user)  # type: ignore[arg-type]
    return _user_envelope(result, "User authenticated successfully")


@router.post("/signout", response_model=MessageResponse)
def signout(response: Response) -> MessageResponse:
    """Clear the session cookie."""
    clear_auth_cookie(response)
    return MessageResponse(message="User signed out successfully")


@router.get("/profile", response_model=UserEnvelope)
def get_profile(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> UserEnvelope:
    """Get the current user's profile."""
    result = get_account_service().get_profile(db, user.user_id)
    raise_for_result(result)
    return _user_envelope(result, "User profile retrieved successfully")


@router.patch("/profile", response_model=UserEnvelope)
def update_profile(
    body: ProfileUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserEnvelope:
    """Update name, email, bio and/or avatar. Omitted fields are left unchanged."""
    result = get_account_service().update_profile(db, user.user_id, body.provided_changes())
    raise_for_result(result)
    return _user_envelope(result, "User profile updated successfully")


@router.patch("/password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Change password after verifying the current one."""
    result = get_account_service().change_password(db, user.user_id, body.current_password, body.new_password)
    raise_for_result(result)
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/minute")
def forgot_password(request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Request a password reset. Logs the reset link to the server console."""
    result = get_account_service().request_password_reset(db, body.email)
    raise_for_result(result)

    base_url = str(request.base_url).rstrip("/")
    logger.info("PASSWORD RESET: %s%s/reset-password/%s", base_url, router.prefix, result.reset_token)

    return MessageResponse(message="Reset link sent to email")


@router.post("/reset-password/{token}", response_model=MessageResponse)
@limiter.limit("5/minute")
def reset_password(
    request: Request,
    token: str,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Set a new password using a reset token."""
    result = get_account_service().reset_password(db, token, body.password)
    raise_for_result(result)
    return MessageResponse(message="Password has been reset successfully")


@router.delete("/account", response_model=MessageResponse)
def delete_account(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Delete the current user's account and end the session."""
    get_account_service().delete_account(db, user.user_id)
    clear_auth_cookie(response)
    return MessageResponse(message="User account deleted successfully")
