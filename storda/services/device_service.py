"""Device record store: registration, lookups, and the status state machine.

Status transitions:

    active      -> lost | stolen      owner reports the device
    lost|stolen -> active             owner confirms recovery / withdraws report
    transferred -> active             new owner activates the device
    active      -> transferred        only through an accepted transfer

Rows are never deleted; every transition is appended to
``device_status_changes``.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, or_, select

from storda.config import settings
from storda.errors import (
    BlacklistedDeviceError,
    DeviceNotFoundError,
    DuplicateImeiError,
    IllegalTransitionError,
    NotOwnerError,
    RegistryError,
    ValidationError,
)
from storda.models.account import Account
from storda.models.device import Device, DeviceStatusChange, RecoveryReport, new_device_id
from storda.models.enums import DeviceStatus, VerificationStatus
from storda.models.transfer import TransferHistory
from storda.services import ledger_service
from storda.services.verification_service import check_blacklist, proof_verification
from storda.utils.clock import utcnow
from storda.utils.validators import validate_imei, validate_mac

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[DeviceStatus, set[DeviceStatus]] = {
    DeviceStatus.active: {DeviceStatus.lost, DeviceStatus.stolen},
    DeviceStatus.lost: {DeviceStatus.active},
    DeviceStatus.stolen: {DeviceStatus.active},
    DeviceStatus.transferred: {DeviceStatus.active},
}

REPORTED = (DeviceStatus.lost, DeviceStatus.stolen)


# --- Lookups ---

def get_by_id(device_id: str, session: Session) -> Device | None:
    return session.get(Device, device_id.upper())


def get_by_imei(imei: str, session: Session) -> Device | None:
    return session.exec(select(Device).where(Device.imei == imei)).first()


def get_device(device_id: str, session: Session) -> Device:
    device = get_by_id(device_id, session)
    if not device:
        raise DeviceNotFoundError(device_id)
    return device


def list_for_owner(account: Account, session: Session) -> list[Device]:
    return list(session.exec(
        select(Device)
        .where(Device.owner_id == account.id)
        .order_by(col(Device.registered_at).desc())
    ).all())


def require_owner(device: Device, actor: Account) -> None:
    if device.owner_id != actor.id:
        raise NotOwnerError()


# --- Registration ---

def _unused_device_id(session: Session) -> str:
    for _ in range(10):
        candidate = new_device_id()
        if not session.get(Device, candidate):
            return candidate
    raise RuntimeError("Could not allocate a device ID")


def record_status_change(
    device: Device,
    from_status: DeviceStatus | None,
    to_status: DeviceStatus,
    actor_id: str,
    session: Session,
    note: str | None = None,
) -> DeviceStatusChange:
    change = DeviceStatusChange(
        device_id=device.id,
        from_status=from_status,
        to_status=to_status,
        actor_id=actor_id,
        note=note,
    )
    session.add(change)
    return change


def register(account: Account, data, session: Session) -> Device:
    """Register a device for ``account`` and charge the registration fee.

    ``data`` carries imei, mac_address, brand, model, storage, color,
    has_receipt and has_photo.

    Checks run in order: IMEI format, IMEI uniqueness (including devices
    already transferred away), blacklist, then the fee. Nothing is written
    unless all of them pass.
    """
    imei = validate_imei(data.imei)
    mac = validate_mac(data.mac_address)
    brand = (data.brand or "").strip()
    model = (data.model or "").strip()
    if not brand:
        raise ValidationError("Brand is required", field="brand")
    if not model:
        raise ValidationError("Model is required", field="model")

    if get_by_imei(imei, session):
        raise DuplicateImeiError(f"IMEI {imei} is already registered")

    blacklist = check_blacklist(imei)
    if blacklist.is_blacklisted:
        logger.warning("Registration refused for blacklisted IMEI %s: %s", imei, blacklist.reason)
        raise BlacklistedDeviceError(blacklist.reason or f"IMEI {imei} is blacklisted")

    if blacklist.checked:
        status, method = proof_verification(data.has_receipt, data.has_photo)
    else:
        # Registry unreachable: accept, but leave unverified until re-checked
        _, method = proof_verification(data.has_receipt, data.has_photo)
        status = VerificationStatus.unverified

    now = utcnow()
    device = Device(
        id=_unused_device_id(session),
        imei=imei,
        mac_address=mac,
        brand=brand,
        model=model,
        storage=data.storage,
        color=data.color,
        owner_id=account.id,
        registered_by=account.id,
        status=DeviceStatus.active,
        verification_status=status,
        verification_method=method,
        verification_date=now if status == VerificationStatus.verified else None,
        has_receipt=data.has_receipt,
        has_photo=data.has_photo,
        blacklist_check_pending=not blacklist.checked,
        registered_at=now,
        updated_at=now,
    )

    try:
        session.add(device)
        session.flush()  # unique IMEI index decides concurrent registrations
        ledger_service.debit(
            account.id,
            settings.registration_fee,
            session,
            memo="device registration",
            reference=device.id,
        )
        record_status_change(device, None, DeviceStatus.active, account.id, session, note="registered")
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateImeiError(f"IMEI {imei} is already registered")
    except Exception:
        session.rollback()
        raise

    session.refresh(device)
    session.refresh(account)
    logger.info(
        "Registered device %s (IMEI %s) for %s, verification=%s",
        device.id, imei, account.id, device.verification_status.value,
    )
    return device


def register_bulk(account: Account, items: list, session: Session) -> list[dict]:
    """Register several devices, each charged separately.

    The whole batch is refused up front when the balance cannot cover every
    item; otherwise each item succeeds or fails on its own.
    """
    if not items:
        raise ValidationError("No devices to register", field="devices")
    ledger_service.ensure_balance(account.id, settings.registration_fee * len(items), session)

    results = []
    for item in items:
        try:
            device = register(account, item, session)
        except RegistryError as e:
            results.append({
                "imei": item.imei,
                "device_id": None,
                "error": e.code,
                "message": e.message,
            })
        else:
            results.append({
                "imei": device.imei,
                "device_id": device.id,
                "error": None,
                "message": None,
            })
    return results


# --- Status state machine ---

def update_status(
    device: Device,
    new_status: DeviceStatus,
    actor: Account,
    session: Session,
    note: str | None = None,
) -> Device:
    """Apply an owner-driven status transition."""
    require_owner(device, actor)

    old_status = device.status
    if new_status == DeviceStatus.transferred:
        raise IllegalTransitionError("Devices are transferred through a transfer request")
    if new_status not in ALLOWED_TRANSITIONS.get(old_status, set()):
        raise IllegalTransitionError(
            f"Cannot change device status from {old_status.value} to {new_status.value}"
        )

    changed = session.exec(
        update(Device)
        .where(
            Device.id == device.id,
            Device.owner_id == actor.id,
            Device.status == old_status,
        )
        .values(status=new_status, updated_at=utcnow())
    )
    if changed.rowcount != 1:
        session.rollback()
        session.refresh(device)
        raise IllegalTransitionError(
            f"Device {device.id} changed while updating its status; it is now {device.status.value}"
        )

    record_status_change(device, old_status, new_status, actor.id, session, note=note)
    session.commit()
    session.refresh(device)

    logger.info("Device %s status %s -> %s by %s", device.id, old_status.value, new_status.value, actor.id)
    return device


def history(device: Device, actor: Account, session: Session) -> dict:
    """Status changes and completed transfers, oldest first."""
    involved = {device.owner_id, device.previous_owner_id, device.registered_by}
    if actor.id not in involved:
        past_parties = session.exec(
            select(TransferHistory.id).where(
                TransferHistory.device_id == device.id,
                or_(
                    TransferHistory.from_account_id == actor.id,
                    TransferHistory.to_account_id == actor.id,
                ),
            )
        ).first()
        if not past_parties:
            raise NotOwnerError("Only current or past owners can view this history")

    changes = session.exec(
        select(DeviceStatusChange)
        .where(DeviceStatusChange.device_id == device.id)
        .order_by(col(DeviceStatusChange.created_at).asc())
    ).all()
    transfers = session.exec(
        select(TransferHistory)
        .where(TransferHistory.device_id == device.id)
        .order_by(col(TransferHistory.transferred_at).asc())
    ).all()
    return {"status_changes": list(changes), "transfers": list(transfers)}


# --- Public IMEI check ---

def check_imei(imei: str, session: Session) -> dict:
    """What anyone may learn about an IMEI before buying a used device."""
    imei = validate_imei(imei)
    device = get_by_imei(imei, session)
    if not device:
        return {
            "imei": imei,
            "registered": False,
            "status": None,
            "brand": None,
            "model": None,
            "reported": False,
            "verification_status": None,
        }
    return {
        "imei": imei,
        "registered": True,
        "status": device.status.value,
        "brand": device.brand,
        "model": device.model,
        "reported": device.status in REPORTED or device.is_blacklisted,
        "verification_status": device.verification_status.value,
    }


# --- Recovery reports ---

def file_recovery_report(device: Device, reporter: Account, data, session: Session) -> RecoveryReport:
    """Record that someone found a lost or stolen device."""
    if device.status not in REPORTED:
        raise IllegalTransitionError("Only lost or stolen devices accept recovery reports")

    fields = {
        "recovered_by": (data.recovered_by or "").strip(),
        "recovery_location": (data.recovery_location or "").strip(),
        "contact_info": (data.contact_info or "").strip(),
    }
    for name, value in fields.items():
        if not value:
            raise ValidationError(f"{name.replace('_', ' ').capitalize()} is required", field=name)

    report = RecoveryReport(
        device_id=device.id,
        reporter_id=reporter.id,
        recovery_details=(data.recovery_details or "").strip() or None,
        **fields,
    )
    session.add(report)
    session.commit()
    session.refresh(report)

    logger.info("Recovery report %s filed for device %s by %s", report.id, device.id, reporter.id)
    return report


def list_recovery_reports(device: Device, actor: Account, session: Session) -> list[RecoveryReport]:
    require_owner(device, actor)
    return list(session.exec(
        select(RecoveryReport)
        .where(RecoveryReport.device_id == device.id)
        .order_by(col(RecoveryReport.created_at).desc())
    ).all())
