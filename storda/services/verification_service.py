"""Ownership verification and blacklist checks.

A blacklist lookup never blocks registration for longer than
``blacklist_timeout_seconds``: a timeout or registry failure comes back as
an unchecked result, and the device is flagged for a later re-check.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

from sqlmodel import Session, select

from storda.config import settings
from storda.errors import BlacklistedDeviceError, ValidationError
from storda.models.account import Account
from storda.models.device import Device
from storda.models.enums import VerificationMethod, VerificationStatus
from storda.services.blacklist import BlacklistResult, build_registry
from storda.utils.clock import utcnow

logger = logging.getLogger(__name__)

_registry = build_registry()
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="blacklist")


def set_registry(registry) -> None:
    """Swap the blacklist registry (anything with ``lookup(imei) -> BlacklistResult``)."""
    global _registry
    _registry = registry


def get_registry():
    return _registry


def check_blacklist(imei: str, timeout: float | None = None) -> BlacklistResult:
    """Look an IMEI up in the registry, bounded by a timeout. Never raises."""
    timeout = settings.blacklist_timeout_seconds if timeout is None else timeout
    future = _executor.submit(_registry.lookup, imei)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        logger.warning("Blacklist lookup for %s timed out after %.1fs", imei, timeout)
    except Exception as e:
        logger.warning("Blacklist lookup for %s failed: %s", imei, e)
    return BlacklistResult(is_blacklisted=False, reason="registry unavailable", checked=False)


def proof_verification(has_receipt: bool, has_photo: bool) -> tuple[VerificationStatus, VerificationMethod]:
    """Verification implied by the proof of purchase on file."""
    if has_receipt and has_photo:
        return VerificationStatus.verified, VerificationMethod.both
    if has_receipt:
        return VerificationStatus.verified, VerificationMethod.receipt
    if has_photo:
        return VerificationStatus.verified, VerificationMethod.photo
    return VerificationStatus.pending, VerificationMethod.none


def verify(device: Device, method: VerificationMethod, actor: Account, session: Session) -> Device:
    """Record proof of ownership and mark the device verified. Owner only.

    A device whose blacklist lookup never completed is looked up again
    first. If the registry still cannot answer, the proof is kept but the
    device stays ``unverified`` until a later re-check clears it.
    """
    from storda.services.device_service import require_owner

    require_owner(device, actor)
    if method == VerificationMethod.none:
        raise ValidationError("Verification needs a receipt, a photo, or both", field="method")
    if device.blacklist_check_pending:
        device = recheck_blacklist(device, session)
    if device.is_blacklisted:
        raise BlacklistedDeviceError(f"Device {device.id} is blacklisted and cannot be verified")

    now = utcnow()
    if method in (VerificationMethod.receipt, VerificationMethod.both):
        device.has_receipt = True
    if method in (VerificationMethod.photo, VerificationMethod.both):
        device.has_photo = True
    device.verification_method = method
    if device.blacklist_check_pending:
        device.verification_status = VerificationStatus.unverified
        logger.warning("Device %s proof recorded; blacklist check still pending", device.id)
    else:
        device.verification_status = VerificationStatus.verified
        device.verification_date = now
        logger.info("Device %s verified by %s (%s)", device.id, actor.id, method.value)
    device.updated_at = now
    session.add(device)
    session.commit()
    session.refresh(device)
    return device


def recheck_blacklist(device: Device, session: Session) -> Device:
    """Re-run the lookup for a device whose registration check was inconclusive."""
    result = check_blacklist(device.imei)
    if not result.checked:
        return device

    device.blacklist_check_pending = False
    if result.is_blacklisted:
        device.is_blacklisted = True
        device.verification_status = VerificationStatus.unverified
        logger.warning("Device %s (IMEI %s) is blacklisted: %s", device.id, device.imei, result.reason)
    elif device.verification_status == VerificationStatus.unverified:
        status, method = proof_verification(device.has_receipt, device.has_photo)
        device.verification_status = status
        device.verification_method = method
        if status == VerificationStatus.verified:
            device.verification_date = utcnow()
    device.updated_at = utcnow()
    session.add(device)
    session.commit()
    session.refresh(device)
    return device


def recheck_pending(session: Session, limit: int = 50) -> int:
    """Re-check flagged devices. Returns how many lookups completed."""
    devices = session.exec(
        select(Device).where(Device.blacklist_check_pending == True).limit(limit)  # noqa: E712
    ).all()
    done = 0
    for device in devices:
        recheck_blacklist(device, session)
        if not device.blacklist_check_pending:
            done += 1
    return done
