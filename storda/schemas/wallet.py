"""Points wallet schemas."""

from typing import Optional

from pydantic import BaseModel


class TransactionResponse(BaseModel):
    id: str
    kind: str
    amount: int
    balance_after: int
    memo: str
    reference: Optional[str]
    created_at: str


class WalletResponse(BaseModel):
    account_id: str
    balance: int
    transactions: list[TransactionResponse]


class TopUpRequest(BaseModel):
    points: int
