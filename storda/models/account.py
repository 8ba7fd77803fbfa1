"""Account model."""

import secrets
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from storda.models.types import UTCDateTime
from storda.utils.clock import utcnow


class Account(SQLModel, table=True):
    __tablename__ = "accounts"

    id: str = Field(default_factory=lambda: f"acc_{secrets.token_hex(4)}", primary_key=True)
    email: str = Field(unique=True, index=True)  # stored lower-cased
    phone: Optional[str] = Field(default=None, unique=True)
    full_name: str
    nin: Optional[str] = None  # 11-digit National Identification Number
    password_hash: str
    pin_hash: str
    points_balance: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    # Notification preferences
    notify_push: bool = True
    notify_email: bool = True
    notify_sms: bool = False
    alert_device: bool = True  # status changes, transfer requests, recovery reports
    alert_security: bool = True  # PIN lockouts, sign-ins
    alert_payment: bool = True  # fees and top-ups
    alert_promotional: bool = False
