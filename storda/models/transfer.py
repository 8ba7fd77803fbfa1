"""Ownership transfer models."""

import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from storda.models.enums import ContactChannel, TransferState, VerificationMethod
from storda.models.types import UTCDateTime
from storda.utils.clock import utcnow


def new_transfer_id() -> str:
    return f"TRF-{secrets.randbelow(900000) + 100000}"


class TransferRequest(SQLModel, table=True):
    __tablename__ = "transfer_requests"
    __table_args__ = (
        # At most one pending request per device
        Index(
            "uq_transfer_requests_pending_device",
            "device_id",
            unique=True,
            sqlite_where=text("state = 'awaiting_recipient'"),
            postgresql_where=text("state = 'awaiting_recipient'"),
        ),
    )

    id: str = Field(default_factory=new_transfer_id, primary_key=True)
    device_id: str = Field(foreign_key="devices.id", index=True)
    source_account_id: str = Field(foreign_key="accounts.id", index=True)
    recipient_contact: str = Field(index=True)
    recipient_channel: ContactChannel
    recipient_name: str
    require_id: bool = False
    recipient_nin: Optional[str] = None
    reason: Optional[str] = None
    fee_transaction_id: Optional[str] = None
    state: TransferState = Field(default=TransferState.awaiting_recipient, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    expires_at: datetime = Field(sa_type=UTCDateTime)
    resolved_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    resolved_by: Optional[str] = None


class TransferHistory(SQLModel, table=True):
    __tablename__ = "transfer_history"

    id: str = Field(default_factory=lambda: f"trh_{secrets.token_hex(4)}", primary_key=True)
    device_id: str = Field(foreign_key="devices.id", index=True)
    transfer_id: str = Field(foreign_key="transfer_requests.id", unique=True)
    from_account_id: str = Field(foreign_key="accounts.id")
    to_account_id: str = Field(foreign_key="accounts.id")
    recipient_contact: str
    recipient_name: str
    verification_method: VerificationMethod
    was_verified: bool = True
    reason: Optional[str] = None
    transferred_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
