"""Points ledger model."""

import secrets
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from storda.models.enums import LedgerKind
from storda.models.types import UTCDateTime
from storda.utils.clock import utcnow


class LedgerTransaction(SQLModel, table=True):
    __tablename__ = "ledger_transactions"

    id: str = Field(default_factory=lambda: f"txn_{secrets.token_hex(4)}", primary_key=True)
    account_id: str = Field(foreign_key="accounts.id", index=True)
    kind: LedgerKind
    amount: int  # always positive; kind gives the direction
    balance_after: int
    memo: str = ""
    reference: Optional[str] = None  # device or transfer ID
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
