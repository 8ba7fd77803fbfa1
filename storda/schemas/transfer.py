"""Transfer request/response schemas."""

from typing import Literal, Optional

from pydantic import BaseModel


class TransferInitiateRequest(BaseModel):
    device_id: str
    recipient_contact: str  # email or phone
    recipient_name: str
    require_id: bool = False
    recipient_nin: Optional[str] = None
    reason: Optional[str] = None
    pin: str


class TransferInitiateResponse(BaseModel):
    transfer_id: str
    state: str
    expires_at: str
    fee: int


class TransferResponse(BaseModel):
    id: str
    device_id: str
    source_account_id: str
    recipient_contact: str
    recipient_channel: str
    recipient_name: str
    require_id: bool
    reason: Optional[str]
    state: str
    created_at: str
    expires_at: str
    resolved_at: Optional[str]


class TransferResolveRequest(BaseModel):
    action: Literal["accept", "reject"]
    pin: str
    nin: Optional[str] = None  # required when the sender asked for ID


class TransferResolveResponse(BaseModel):
    transfer_id: str
    state: str
    device_id: str
    device_status: str
