"""Points wallet API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storda.api.deps import get_current_account
from storda.database import get_session
from storda.models.account import Account
from storda.schemas.wallet import TopUpRequest, TransactionResponse, WalletResponse
from storda.services import ledger_service

router = APIRouter(prefix="/wallet", tags=["wallet"])


def _wallet(account: Account, session: Session, limit: int = 100) -> WalletResponse:
    balance, transactions = ledger_service.statement(account.id, session, limit=limit)
    return WalletResponse(
        account_id=account.id,
        balance=balance,
        transactions=[
            TransactionResponse(
                id=t.id,
                kind=t.kind.value,
                amount=t.amount,
                balance_after=t.balance_after,
                memo=t.memo,
                reference=t.reference,
                created_at=t.created_at.isoformat(),
            )
            for t in transactions
        ],
    )


@router.get("", response_model=WalletResponse)
def get_wallet(
    limit: int = Query(default=100, ge=1, le=500),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Points balance and recent transactions, newest first."""
    return _wallet(account, session, limit)


@router.post("/topup", response_model=WalletResponse)
def top_up(
    request: TopUpRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Buy one of the point packages."""
    ledger_service.top_up(account, request.points, session)
    return _wallet(account, session)
