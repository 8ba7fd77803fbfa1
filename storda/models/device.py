"""Device, status-change and recovery-report models."""

import secrets
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from storda.models.enums import DeviceStatus, VerificationMethod, VerificationStatus
from storda.models.types import UTCDateTime
from storda.utils.clock import utcnow


def new_device_id() -> str:
    return f"STD-{secrets.randbelow(900000) + 100000}"


class Device(SQLModel, table=True):
    __tablename__ = "devices"

    id: str = Field(default_factory=new_device_id, primary_key=True)
    imei: str = Field(unique=True, index=True)
    mac_address: Optional[str] = None
    brand: str
    model: str
    storage: Optional[str] = None
    color: Optional[str] = None
    owner_id: str = Field(foreign_key="accounts.id", index=True)
    registered_by: str = Field(foreign_key="accounts.id")
    previous_owner_id: Optional[str] = Field(default=None, foreign_key="accounts.id")
    status: DeviceStatus = Field(default=DeviceStatus.active, index=True)
    verification_status: VerificationStatus = Field(default=VerificationStatus.pending)
    verification_method: VerificationMethod = Field(default=VerificationMethod.none)
    verification_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    has_receipt: bool = False
    has_photo: bool = False
    is_blacklisted: bool = False
    blacklist_check_pending: bool = Field(default=False, index=True)
    registered_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class DeviceStatusChange(SQLModel, table=True):
    __tablename__ = "device_status_changes"

    id: str = Field(default_factory=lambda: f"dsc_{secrets.token_hex(4)}", primary_key=True)
    device_id: str = Field(foreign_key="devices.id", index=True)
    from_status: Optional[DeviceStatus] = None  # None for the registration entry
    to_status: DeviceStatus
    actor_id: str = Field(foreign_key="accounts.id")
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class RecoveryReport(SQLModel, table=True):
    __tablename__ = "recovery_reports"

    id: str = Field(default_factory=lambda: f"rec_{secrets.token_hex(4)}", primary_key=True)
    device_id: str = Field(foreign_key="devices.id", index=True)
    reporter_id: str = Field(foreign_key="accounts.id")
    recovered_by: str
    recovery_location: str
    recovery_details: Optional[str] = None
    contact_info: str
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
