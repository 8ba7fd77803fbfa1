"""Ownership transfer workflow.

    initiated -> pin_confirmed -> awaiting_recipient -> accepted | rejected | expired

``initiate`` walks the first three states inside one call and persists the
request as ``awaiting_recipient``. The fee is debited in the same database
transaction that creates the request, so a failed creation never keeps the
fee. The device only becomes ``transferred`` when the recipient accepts;
until then the pending request locks it against a second transfer.

Terminal transitions are conditional updates on
``state = 'awaiting_recipient'``: when accept, reject and the expiry sweep
race, the first commit wins and the others get AlreadyResolvedError.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, or_, select

from storda.config import settings
from storda.errors import (
    AlreadyResolvedError,
    IllegalTransitionError,
    NotOwnerError,
    NotRecipientError,
    NotVerifiedError,
    TransferNotFoundError,
    TransferPendingError,
    ValidationError,
)
from storda.models.account import Account
from storda.models.device import Device
from storda.models.enums import ContactChannel, DeviceStatus, TransferState, VerificationStatus
from storda.models.transfer import TransferHistory, TransferRequest, new_transfer_id
from storda.services import ledger_service
from storda.services.device_service import get_device, record_status_change
from storda.utils.clock import utcnow
from storda.utils.rate_limit import confirm_pin
from storda.utils.validators import normalize_phone, parse_contact, validate_nin

logger = logging.getLogger(__name__)

TERMINAL = (TransferState.accepted, TransferState.rejected, TransferState.expired)


# --- Helpers ---

def get_transfer(transfer_id: str, session: Session) -> TransferRequest:
    transfer = session.get(TransferRequest, transfer_id.upper())
    if not transfer:
        raise TransferNotFoundError(transfer_id)
    return transfer


def pending_for_device(device_id: str, session: Session) -> TransferRequest | None:
    return session.exec(
        select(TransferRequest).where(
            TransferRequest.device_id == device_id,
            TransferRequest.state == TransferState.awaiting_recipient,
        )
    ).first()


def _contacts(account: Account) -> set[str]:
    contacts = {account.email.lower()}
    if account.phone:
        contacts.add(normalize_phone(account.phone))
    return contacts


def is_recipient(transfer: TransferRequest, account: Account) -> bool:
    return transfer.recipient_contact in _contacts(account)


def _is_overdue(transfer: TransferRequest, now: datetime) -> bool:
    return transfer.state == TransferState.awaiting_recipient and transfer.expires_at <= now


def _resolve(
    transfer: TransferRequest,
    new_state: TransferState,
    session: Session,
    actor_id: str | None,
    now: datetime,
) -> bool:
    """Move a pending request to a terminal state. False if something else got there first."""
    result = session.exec(
        update(TransferRequest)
        .where(
            TransferRequest.id == transfer.id,
            TransferRequest.state == TransferState.awaiting_recipient,
        )
        .values(state=new_state, resolved_at=now, resolved_by=actor_id)
    )
    return result.rowcount == 1


def _unused_transfer_id(session: Session) -> str:
    for _ in range(10):
        candidate = new_transfer_id()
        if not session.get(TransferRequest, candidate):
            return candidate
    raise RuntimeError("Could not allocate a transfer ID")


def _create_request(
    device: Device,
    account: Account,
    channel: ContactChannel,
    contact: str,
    name: str,
    require_id: bool,
    nin: str | None,
    reason: str | None,
    fee_transaction_id: str,
    now: datetime,
    session: Session,
) -> TransferRequest:
    transfer = TransferRequest(
        id=_unused_transfer_id(session),
        device_id=device.id,
        source_account_id=account.id,
        recipient_contact=contact,
        recipient_channel=channel,
        recipient_name=name,
        require_id=require_id,
        recipient_nin=nin,
        reason=reason,
        fee_transaction_id=fee_transaction_id,
        state=TransferState.awaiting_recipient,
        created_at=now,
        expires_at=now + timedelta(hours=settings.transfer_expiry_hours),
    )
    session.add(transfer)
    session.flush()
    return transfer


# --- Owner side ---

def initiate(account: Account, data, session: Session) -> TransferRequest:
    """Start a transfer of ``data.device_id`` to ``data.recipient_contact``.

    Preconditions are checked in order and fail fast:
    ownership, reported status, verification, recipient contact, recipient
    name, recipient NIN (when ``require_id``), PIN, balance.
    """
    state = TransferState.initiated

    device = get_device(data.device_id, session)
    if device.owner_id != account.id:
        raise NotOwnerError("Only the current owner can transfer this device")
    if device.status in (DeviceStatus.lost, DeviceStatus.stolen):
        raise IllegalTransitionError(
            f"Device is reported {device.status.value} and cannot be transferred"
        )
    if device.status != DeviceStatus.active:
        raise IllegalTransitionError("Activate the device before transferring it")
    if device.verification_status != VerificationStatus.verified:
        raise NotVerifiedError("Verify the device before transferring it")
    if device.blacklist_check_pending:
        raise NotVerifiedError("The blacklist check for this device has not completed yet")

    channel, contact = parse_contact(data.recipient_contact)
    if contact in _contacts(account):
        raise ValidationError("You cannot transfer a device to yourself", field="recipient_contact")

    name = (data.recipient_name or "").strip()
    if not name:
        raise ValidationError("Recipient full name is required", field="recipient_name")

    nin = None
    if data.require_id:
        nin = validate_nin(data.recipient_nin, field="recipient_nin")

    now = utcnow()
    pending = pending_for_device(device.id, session)
    if pending and _is_overdue(pending, now):
        expire(pending.id, session, now=now)
        pending = None
    if pending:
        raise TransferPendingError(f"Transfer {pending.id} is already waiting for the recipient")

    confirm_pin(account, data.pin)
    state = TransferState.pin_confirmed
    logger.debug("Transfer of %s by %s: %s", device.id, account.id, state.value)

    ledger_service.ensure_balance(account.id, settings.transfer_fee, session)

    try:
        fee = ledger_service.debit(
            account.id,
            settings.transfer_fee,
            session,
            memo="ownership transfer fee",
            reference=device.id,
        )
        transfer = _create_request(
            device, account, channel, contact, name, data.require_id, nin,
            (data.reason or "").strip() or None, fee.id, now, session,
        )
        session.commit()
    except IntegrityError:
        session.rollback()
        raise TransferPendingError("Another transfer for this device was started first")
    except Exception:
        session.rollback()
        raise

    session.refresh(transfer)
    session.refresh(account)
    logger.info(
        "Transfer %s: device %s from %s to %s, %s until %s",
        transfer.id, device.id, account.id, contact, transfer.state.value, transfer.expires_at.isoformat(),
    )
    return transfer


# --- Recipient side ---

def accept(transfer_id: str, account: Account, pin: str, nin: str | None, session: Session) -> Device:
    """Complete a transfer. Accepting an already-accepted request is a no-op."""
    transfer = get_transfer(transfer_id, session)
    if not is_recipient(transfer, account):
        raise NotRecipientError()

    if transfer.state == TransferState.accepted:
        return get_device(transfer.device_id, session)
    if transfer.state in TERMINAL:
        raise AlreadyResolvedError(f"Transfer {transfer.id} was already {transfer.state.value}")

    now = utcnow()
    if _is_overdue(transfer, now):
        expire(transfer.id, session, now=now)
        raise AlreadyResolvedError(f"Transfer {transfer.id} has expired")

    confirm_pin(account, pin)
    if transfer.require_id and (nin or "").strip() != transfer.recipient_nin:
        raise ValidationError("NIN does not match the one given by the sender", field="nin")

    device = get_device(transfer.device_id, session)
    if device.owner_id != transfer.source_account_id or device.status != DeviceStatus.active:
        raise IllegalTransitionError(
            f"Device is {device.status.value} and can no longer be transferred"
        )

    try:
        if not _resolve(transfer, TransferState.accepted, session, account.id, now):
            session.rollback()
            session.refresh(transfer)
            if transfer.state == TransferState.accepted and transfer.resolved_by == account.id:
                return get_device(transfer.device_id, session)
            raise AlreadyResolvedError(f"Transfer {transfer.id} was already {transfer.state.value}")

        # The device may have been reported or moved since it was read above
        moved = session.exec(
            update(Device)
            .where(
                Device.id == device.id,
                Device.owner_id == transfer.source_account_id,
                Device.status == DeviceStatus.active,
            )
            .values(
                owner_id=account.id,
                previous_owner_id=transfer.source_account_id,
                status=DeviceStatus.transferred,
                updated_at=now,
            )
        )
        if moved.rowcount != 1:
            session.rollback()
            session.refresh(device)
            raise IllegalTransitionError(
                f"Device is {device.status.value} and can no longer be transferred"
            )

        record_status_change(
            device, DeviceStatus.active, DeviceStatus.transferred, account.id, session,
            note=f"transfer {transfer.id}",
        )
        session.add(TransferHistory(
            device_id=device.id,
            transfer_id=transfer.id,
            from_account_id=transfer.source_account_id,
            to_account_id=account.id,
            recipient_contact=transfer.recipient_contact,
            recipient_name=transfer.recipient_name,
            verification_method=device.verification_method,
            was_verified=device.verification_status == VerificationStatus.verified,
            reason=transfer.reason,
            transferred_at=now,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(device)
    session.refresh(transfer)
    logger.info("Transfer %s accepted: device %s now owned by %s", transfer.id, device.id, account.id)
    return device


def reject(transfer_id: str, account: Account, pin: str, session: Session) -> TransferRequest:
    """Decline a transfer (recipient) or cancel it (sender). The fee is not refunded."""
    transfer = get_transfer(transfer_id, session)
    is_source = transfer.source_account_id == account.id
    if not is_source and not is_recipient(transfer, account):
        raise NotRecipientError()

    if transfer.state in TERMINAL:
        raise AlreadyResolvedError(f"Transfer {transfer.id} was already {transfer.state.value}")

    now = utcnow()
    if _is_overdue(transfer, now):
        expire(transfer.id, session, now=now)
        raise AlreadyResolvedError(f"Transfer {transfer.id} has expired")

    confirm_pin(account, pin)

    if not _resolve(transfer, TransferState.rejected, session, account.id, now):
        session.rollback()
        session.refresh(transfer)
        raise AlreadyResolvedError(f"Transfer {transfer.id} was already {transfer.state.value}")
    session.commit()
    session.refresh(transfer)

    logger.info(
        "Transfer %s %s by %s; device %s released",
        transfer.id, "cancelled" if is_source else "rejected", account.id, transfer.device_id,
    )
    return transfer


# --- Expiry ---

def expire(transfer_id: str, session: Session, now: datetime | None = None) -> TransferRequest:
    """Expire one request if it is past its deadline. Safe to call repeatedly."""
    now = now or utcnow()
    transfer = get_transfer(transfer_id, session)
    if _is_overdue(transfer, now):
        if _resolve(transfer, TransferState.expired, session, None, now):
            logger.info("Transfer %s expired; device %s released", transfer.id, transfer.device_id)
        session.commit()
        session.refresh(transfer)
    return transfer


def expire_overdue(session: Session, now: datetime | None = None) -> int:
    """Sweep every overdue request to expired. Returns how many were expired here."""
    now = now or utcnow()
    overdue = session.exec(
        select(TransferRequest).where(
            TransferRequest.state == TransferState.awaiting_recipient,
            TransferRequest.expires_at <= now,
        )
    ).all()

    expired = 0
    for transfer in overdue:
        if _resolve(transfer, TransferState.expired, session, None, now):
            expired += 1
    session.commit()

    if expired:
        logger.info("Expired %d overdue transfer request(s)", expired)
    return expired


# --- Queries ---

def list_for_account(account: Account, session: Session, direction: str | None = None) -> list[TransferRequest]:
    """Transfers sent by (outgoing) or addressed to (incoming) the account."""
    outgoing = TransferRequest.source_account_id == account.id
    incoming = col(TransferRequest.recipient_contact).in_(sorted(_contacts(account)))
    if direction == "outgoing":
        clause = outgoing
    elif direction == "incoming":
        clause = incoming
    else:
        clause = or_(outgoing, incoming)

    return list(session.exec(
        select(TransferRequest)
        .where(clause)
        .order_by(col(TransferRequest.created_at).desc())
    ).all())


def get_for_account(transfer_id: str, account: Account, session: Session) -> TransferRequest:
    transfer = get_transfer(transfer_id, session)
    if transfer.source_account_id != account.id and not is_recipient(transfer, account):
        raise NotRecipientError("This transfer does not involve you")
    if _is_overdue(transfer, utcnow()):
        transfer = expire(transfer.id, session)
    return transfer
