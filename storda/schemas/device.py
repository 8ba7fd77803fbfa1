"""Device request/response schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from storda.models.enums import DeviceStatus, VerificationMethod


# --- Registration ---

class DeviceRegisterRequest(BaseModel):
    imei: str
    mac_address: Optional[str] = None
    brand: str
    model: str
    storage: Optional[str] = None
    color: Optional[str] = None
    has_receipt: bool = False
    has_photo: bool = False


class DeviceRegisterResponse(BaseModel):
    device_id: str
    status: str
    verification_status: str


class BulkRegisterRequest(BaseModel):
    devices: list[DeviceRegisterRequest] = Field(min_length=1, max_length=50)


class BulkRegisterItem(BaseModel):
    imei: str
    device_id: Optional[str]
    error: Optional[str]
    message: Optional[str]


class BulkRegisterResponse(BaseModel):
    registered: int
    failed: int
    points_used: int
    results: list[BulkRegisterItem]


# --- Device detail ---

class DeviceResponse(BaseModel):
    id: str
    imei: str
    mac_address: Optional[str]
    brand: str
    model: str
    storage: Optional[str]
    color: Optional[str]
    ownership: bool
    status: str
    verification_status: str
    verification_method: str
    verification_date: Optional[str]
    is_blacklisted: bool
    blacklist_check_pending: bool
    registered_at: str


class StatusUpdateRequest(BaseModel):
    status: DeviceStatus
    pin: str
    note: Optional[str] = None


class VerifyRequest(BaseModel):
    method: VerificationMethod


# --- History ---

class StatusChangeResponse(BaseModel):
    from_status: Optional[str]
    to_status: str
    actor_id: str
    note: Optional[str]
    created_at: str


class TransferHistoryResponse(BaseModel):
    transfer_id: str
    from_account_id: str
    to_account_id: str
    recipient_contact: str
    recipient_name: str
    verification_method: str
    was_verified: bool
    reason: Optional[str]
    transferred_at: str


class DeviceHistoryResponse(BaseModel):
    device_id: str
    status_changes: list[StatusChangeResponse]
    transfers: list[TransferHistoryResponse]


# --- Public IMEI check ---

class ImeiCheckResponse(BaseModel):
    imei: str
    registered: bool
    status: Optional[str]
    brand: Optional[str]
    model: Optional[str]
    reported: bool
    verification_status: Optional[str]


# --- Recovery ---

class RecoveryReportRequest(BaseModel):
    recovered_by: str
    recovery_location: str
    recovery_details: Optional[str] = None
    contact_info: str


class RecoveryReportResponse(BaseModel):
    id: str
    device_id: str
    reporter_id: str
    recovered_by: str
    recovery_location: str
    recovery_details: Optional[str]
    contact_info: str
    created_at: str
