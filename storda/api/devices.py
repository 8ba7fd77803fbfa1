"""Device registration and management API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from storda.api.deps import get_current_account
from storda.config import settings
from storda.database import get_session
from storda.models.account import Account
from storda.models.device import Device, RecoveryReport
from storda.schemas.device import (
    BulkRegisterItem,
    BulkRegisterRequest,
    BulkRegisterResponse,
    DeviceHistoryResponse,
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    DeviceResponse,
    RecoveryReportRequest,
    RecoveryReportResponse,
    StatusChangeResponse,
    StatusUpdateRequest,
    TransferHistoryResponse,
    VerifyRequest,
)
from storda.services import device_service, verification_service
from storda.utils.rate_limit import confirm_pin

router = APIRouter(prefix="/devices", tags=["devices"])


def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None


def _device_to_response(device: Device, account: Account) -> DeviceResponse:
    return DeviceResponse(
        id=device.id,
        imei=device.imei,
        mac_address=device.mac_address,
        brand=device.brand,
        model=device.model,
        storage=device.storage,
        color=device.color,
        ownership=device.owner_id == account.id,
        status=device.status.value,
        verification_status=device.verification_status.value,
        verification_method=device.verification_method.value,
        verification_date=_iso(device.verification_date),
        is_blacklisted=device.is_blacklisted,
        blacklist_check_pending=device.blacklist_check_pending,
        registered_at=device.registered_at.isoformat(),
    )


def _report_to_response(report: RecoveryReport) -> RecoveryReportResponse:
    return RecoveryReportResponse(
        id=report.id,
        device_id=report.device_id,
        reporter_id=report.reporter_id,
        recovered_by=report.recovered_by,
        recovery_location=report.recovery_location,
        recovery_details=report.recovery_details,
        contact_info=report.contact_info,
        created_at=report.created_at.isoformat(),
    )


def _owned_device(device_id: str, account: Account, session: Session) -> Device:
    device = device_service.get_device(device_id, session)
    device_service.require_owner(device, account)
    return device


@router.post("", response_model=DeviceRegisterResponse, status_code=201)
def register_device(
    request: DeviceRegisterRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Register a device. Costs the registration fee in points."""
    device = device_service.register(account, request, session)
    return DeviceRegisterResponse(
        device_id=device.id,
        status=device.status.value,
        verification_status=device.verification_status.value,
    )


@router.post("/bulk", response_model=BulkRegisterResponse)
def register_devices_bulk(
    request: BulkRegisterRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Register several devices at once; each one is charged separately."""
    results = device_service.register_bulk(account, request.devices, session)
    registered = sum(1 for r in results if r["device_id"])
    return BulkRegisterResponse(
        registered=registered,
        failed=len(results) - registered,
        points_used=registered * settings.registration_fee,
        results=[BulkRegisterItem(**r) for r in results],
    )


@router.get("", response_model=list[DeviceResponse])
def list_devices(
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """List devices owned by the current account."""
    return [
        _device_to_response(d, account)
        for d in device_service.list_for_owner(account, session)
    ]


@router.get("/{device_id}", response_model=DeviceResponse)
def get_device(
    device_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Device details (owner only)."""
    return _device_to_response(_owned_device(device_id, account, session), account)


@router.post("/{device_id}/status", response_model=DeviceResponse)
def update_device_status(
    device_id: str,
    request: StatusUpdateRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Report lost/stolen, confirm recovery, or activate a received device. PIN required."""
    device = _owned_device(device_id, account, session)
    confirm_pin(account, request.pin)
    device = device_service.update_status(device, request.status, account, session, note=request.note)
    return _device_to_response(device, account)


@router.post("/{device_id}/verify", response_model=DeviceResponse)
def verify_device(
    device_id: str,
    request: VerifyRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Verify ownership with a receipt, a photo, or both."""
    device = device_service.get_device(device_id, session)
    device = verification_service.verify(device, request.method, account, session)
    return _device_to_response(device, account)


@router.post("/{device_id}/blacklist-check", response_model=DeviceResponse)
def recheck_device_blacklist(
    device_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Re-run the blacklist lookup for a device registered while the registry was down."""
    device = _owned_device(device_id, account, session)
    if device.blacklist_check_pending:
        device = verification_service.recheck_blacklist(device, session)
    return _device_to_response(device, account)


@router.get("/{device_id}/history", response_model=DeviceHistoryResponse)
def device_history(
    device_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Status changes and completed transfers for a device."""
    device = device_service.get_device(device_id, session)
    history = device_service.history(device, account, session)
    return DeviceHistoryResponse(
        device_id=device.id,
        status_changes=[
            StatusChangeResponse(
                from_status=c.from_status.value if c.from_status else None,
                to_status=c.to_status.value,
                actor_id=c.actor_id,
                note=c.note,
                created_at=c.created_at.isoformat(),
            )
            for c in history["status_changes"]
        ],
        transfers=[
            TransferHistoryResponse(
                transfer_id=t.transfer_id,
                from_account_id=t.from_account_id,
                to_account_id=t.to_account_id,
                recipient_contact=t.recipient_contact,
                recipient_name=t.recipient_name,
                verification_method=t.verification_method.value,
                was_verified=t.was_verified,
                reason=t.reason,
                transferred_at=t.transferred_at.isoformat(),
            )
            for t in history["transfers"]
        ],
    )


@router.post("/{device_id}/recovery-reports", response_model=RecoveryReportResponse, status_code=201)
def report_recovery(
    device_id: str,
    request: RecoveryReportRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Tell the owner that a lost or stolen device has been found."""
    device = device_service.get_device(device_id, session)
    report = device_service.file_recovery_report(device, account, request, session)
    return _report_to_response(report)


@router.get("/{device_id}/recovery-reports", response_model=list[RecoveryReportResponse])
def list_recovery_reports(
    device_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Recovery reports filed for one of your devices."""
    device = device_service.get_device(device_id, session)
    return [
        _report_to_response(r)
        for r in device_service.list_recovery_reports(device, account, session)
    ]
