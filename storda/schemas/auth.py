"""Account and auth request/response schemas."""

from typing import Optional

from pydantic import BaseModel


# --- Signup / Login ---

class SignupRequest(BaseModel):
    email: str
    password: str
    full_name: str
    pin: str  # 6-digit transaction PIN
    phone: Optional[str] = None
    nin: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    account_id: str
    access_token: str
    token_type: str = "bearer"


# --- Profile ---

class ProfileResponse(BaseModel):
    id: str
    email: str
    phone: Optional[str]
    full_name: str
    nin: Optional[str]
    points_balance: int
    created_at: str


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    nin: Optional[str] = None


class PinChangeRequest(BaseModel):
    password: str
    new_pin: str


# --- Notification preferences ---

class NotificationSettings(BaseModel):
    notify_push: bool
    notify_email: bool
    notify_sms: bool
    alert_device: bool
    alert_security: bool
    alert_payment: bool
    alert_promotional: bool


class NotificationSettingsUpdate(BaseModel):
    notify_push: Optional[bool] = None
    notify_email: Optional[bool] = None
    notify_sms: Optional[bool] = None
    alert_device: Optional[bool] = None
    alert_security: Optional[bool] = None
    alert_payment: Optional[bool] = None
    alert_promotional: Optional[bool] = None
