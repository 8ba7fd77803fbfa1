"""Signup, login, and profile API endpoints."""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from storda.api.deps import get_current_account
from storda.database import get_session
from storda.models.account import Account
from storda.schemas.auth import (
    LoginRequest,
    NotificationSettings,
    NotificationSettingsUpdate,
    PinChangeRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    SignupRequest,
    TokenResponse,
)
from storda.services.auth_service import (
    change_pin,
    login,
    notification_settings,
    signup,
    update_notification_settings,
    update_profile,
)

router = APIRouter(tags=["auth"])


def _profile(account: Account) -> ProfileResponse:
    return ProfileResponse(
        id=account.id,
        email=account.email,
        phone=account.phone,
        full_name=account.full_name,
        nin=account.nin,
        points_balance=account.points_balance,
        created_at=account.created_at.isoformat(),
    )


@router.post("/auth/signup", response_model=TokenResponse, status_code=201)
def signup_account(request: SignupRequest, session: Session = Depends(get_session)):
    """Create an account. New accounts start with the welcome points balance."""
    result = signup(
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        pin=request.pin,
        phone=request.phone,
        nin=request.nin,
        session=session,
    )
    return TokenResponse(**result)


@router.post("/auth/login", response_model=TokenResponse)
def login_account(request: LoginRequest, session: Session = Depends(get_session)):
    """Password login. Returns a bearer token."""
    return TokenResponse(**login(request.email, request.password, session))


@router.get("/users/me", response_model=ProfileResponse)
def get_my_profile(account: Account = Depends(get_current_account)):
    """Get the current account's profile."""
    return _profile(account)


@router.patch("/users/me", response_model=ProfileResponse)
def update_my_profile(
    request: ProfileUpdateRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Update name, phone, or NIN."""
    account = update_profile(
        account,
        session,
        full_name=request.full_name,
        phone=request.phone,
        nin=request.nin,
    )
    return _profile(account)


@router.post("/users/me/pin", status_code=status.HTTP_204_NO_CONTENT)
def change_my_pin(
    request: PinChangeRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Change the transaction PIN (password required)."""
    change_pin(account, request.password, request.new_pin, session)


@router.get("/users/me/notifications", response_model=NotificationSettings)
def get_my_notifications(account: Account = Depends(get_current_account)):
    """Notification channels and alert categories."""
    return NotificationSettings(**notification_settings(account))


@router.patch("/users/me/notifications", response_model=NotificationSettings)
def update_my_notifications(
    request: NotificationSettingsUpdate,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Turn notification channels and alert categories on or off."""
    prefs = update_notification_settings(account, request.model_dump(exclude_unset=True), session)
    return NotificationSettings(**prefs)
