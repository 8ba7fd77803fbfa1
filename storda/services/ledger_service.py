"""Points ledger: balances and the append-only transaction log.

Balance changes are conditional UPDATEs so two concurrent debits can never
take an account below zero. Nothing here commits; the caller owns the
transaction so a debit lands or rolls back together with the operation it
pays for.
"""

import logging

from sqlalchemy import update
from sqlmodel import Session, col, select

from storda.config import settings
from storda.errors import InsufficientBalanceError, NotFoundError, ValidationError
from storda.models.account import Account
from storda.models.enums import LedgerKind
from storda.models.ledger import LedgerTransaction

logger = logging.getLogger(__name__)


def _balance(account_id: str, session: Session) -> int:
    balance = session.exec(
        select(Account.points_balance).where(Account.id == account_id)
    ).first()
    if balance is None:
        raise NotFoundError(f"Account {account_id} not found")
    return balance


def _append(
    session: Session,
    account_id: str,
    kind: LedgerKind,
    amount: int,
    memo: str,
    reference: str | None,
) -> LedgerTransaction:
    txn = LedgerTransaction(
        account_id=account_id,
        kind=kind,
        amount=amount,
        balance_after=_balance(account_id, session),
        memo=memo,
        reference=reference,
    )
    session.add(txn)
    session.flush()
    return txn


def credit(
    account_id: str,
    amount: int,
    session: Session,
    memo: str = "",
    reference: str | None = None,
    kind: LedgerKind = LedgerKind.credit,
) -> LedgerTransaction:
    """Increase a balance and log it. Amount must be positive."""
    if amount <= 0:
        raise ValidationError("Amount must be positive", field="amount")

    result = session.exec(
        update(Account)
        .where(Account.id == account_id)
        .values(points_balance=Account.points_balance + amount)
    )
    if result.rowcount != 1:
        raise NotFoundError(f"Account {account_id} not found")

    txn = _append(session, account_id, kind, amount, memo, reference)
    logger.info("%s %d points to %s (%s), balance %d", kind.value, amount, account_id, memo, txn.balance_after)
    return txn


def debit(
    account_id: str,
    amount: int,
    session: Session,
    memo: str = "",
    reference: str | None = None,
) -> LedgerTransaction:
    """Decrease a balance and log it.

    Raises InsufficientBalanceError when the balance is below ``amount``;
    the balance is untouched in that case.
    """
    if amount <= 0:
        raise ValidationError("Amount must be positive", field="amount")

    result = session.exec(
        update(Account)
        .where(Account.id == account_id, Account.points_balance >= amount)
        .values(points_balance=Account.points_balance - amount)
    )
    if result.rowcount != 1:
        raise InsufficientBalanceError(amount, _balance(account_id, session))

    txn = _append(session, account_id, LedgerKind.debit, amount, memo, reference)
    logger.info("debit %d points from %s (%s), balance %d", amount, account_id, memo, txn.balance_after)
    return txn


def reverse(txn: LedgerTransaction, session: Session, memo: str = "") -> LedgerTransaction:
    """Compensate a debit whose paired operation failed after it was committed."""
    if txn.kind != LedgerKind.debit:
        raise ValidationError("Only debits can be reversed", field="transaction")
    return credit(
        txn.account_id,
        txn.amount,
        session,
        memo=memo or f"reversal of {txn.id}",
        reference=txn.reference,
        kind=LedgerKind.reversal,
    )


def ensure_balance(account_id: str, amount: int, session: Session) -> None:
    """Raise InsufficientBalanceError unless the account can cover ``amount``."""
    balance = _balance(account_id, session)
    if balance < amount:
        raise InsufficientBalanceError(amount, balance)


def statement(account_id: str, session: Session, limit: int = 100) -> tuple[int, list[LedgerTransaction]]:
    """Current balance and the most recent transactions, newest first."""
    balance = _balance(account_id, session)
    transactions = list(session.exec(
        select(LedgerTransaction)
        .where(LedgerTransaction.account_id == account_id)
        .order_by(col(LedgerTransaction.created_at).desc(), col(LedgerTransaction.id).desc())
        .limit(limit)
    ).all())
    return balance, transactions


def top_up(account: Account, points: int, session: Session) -> LedgerTransaction:
    """Credit one of the purchasable point packages."""
    if points not in settings.topup_packages:
        packages = ", ".join(str(p) for p in settings.topup_packages)
        raise ValidationError(f"Choose one of the point packages: {packages}", field="points")

    txn = credit(account.id, points, session, memo=f"top-up {points} points")
    session.commit()
    session.refresh(account)
    return txn
