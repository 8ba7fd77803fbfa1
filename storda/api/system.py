"""System status API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session, func, select

from storda.database import get_session
from storda.models.device import Device
from storda.models.enums import TransferState
from storda.models.transfer import TransferRequest
from storda.services.expiry_worker import expiry_worker

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/ping")
def system_ping():
    """Lightweight health check (no auth required)."""
    return {"status": "ok"}


@router.get("/status")
def system_status(session: Session = Depends(get_session)):
    """Registry counters and background sweep state."""
    devices = session.exec(select(func.count()).select_from(Device)).one()
    pending = session.exec(
        select(func.count()).select_from(TransferRequest).where(
            TransferRequest.state == TransferState.awaiting_recipient
        )
    ).one()
    return {
        "devices": devices,
        "pending_transfers": pending,
        "sweep_running": expiry_worker.running,
    }
