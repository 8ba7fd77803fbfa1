"""Ownership transfer API endpoints."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storda.api.deps import get_current_account
from storda.config import settings
from storda.database import get_session
from storda.models.account import Account
from storda.models.transfer import TransferRequest
from storda.schemas.transfer import (
    TransferInitiateRequest,
    TransferInitiateResponse,
    TransferResolveRequest,
    TransferResolveResponse,
    TransferResponse,
)
from storda.services import transfer_service
from storda.services.device_service import get_device

router = APIRouter(prefix="/transfers", tags=["transfers"])


def _transfer_to_response(transfer: TransferRequest) -> TransferResponse:
    return TransferResponse(
        id=transfer.id,
        device_id=transfer.device_id,
        source_account_id=transfer.source_account_id,
        recipient_contact=transfer.recipient_contact,
        recipient_channel=transfer.recipient_channel.value,
        recipient_name=transfer.recipient_name,
        require_id=transfer.require_id,
        reason=transfer.reason,
        state=transfer.state.value,
        created_at=transfer.created_at.isoformat(),
        expires_at=transfer.expires_at.isoformat(),
        resolved_at=transfer.resolved_at.isoformat() if transfer.resolved_at else None,
    )


@router.post("", response_model=TransferInitiateResponse, status_code=201)
def initiate_transfer(
    request: TransferInitiateRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Start an ownership transfer. Charges the transfer fee; the recipient has 24h to accept."""
    transfer = transfer_service.initiate(account, request, session)
    return TransferInitiateResponse(
        transfer_id=transfer.id,
        state=transfer.state.value,
        expires_at=transfer.expires_at.isoformat(),
        fee=settings.transfer_fee,
    )


@router.get("", response_model=list[TransferResponse])
def list_transfers(
    direction: Optional[Literal["incoming", "outgoing"]] = Query(default=None),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Transfers you sent or that are addressed to you."""
    return [
        _transfer_to_response(t)
        for t in transfer_service.list_for_account(account, session, direction)
    ]


@router.get("/{transfer_id}", response_model=TransferResponse)
def get_transfer(
    transfer_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Transfer details for the sender or the recipient."""
    return _transfer_to_response(transfer_service.get_for_account(transfer_id, account, session))


@router.post("/{transfer_id}/resolve", response_model=TransferResolveResponse)
def resolve_transfer(
    transfer_id: str,
    request: TransferResolveRequest,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Accept or reject a transfer with your PIN. The sender may reject to cancel."""
    if request.action == "accept":
        device = transfer_service.accept(transfer_id, account, request.pin, request.nin, session)
        transfer = transfer_service.get_transfer(transfer_id, session)
    else:
        transfer = transfer_service.reject(transfer_id, account, request.pin, session)
        device = get_device(transfer.device_id, session)

    return TransferResolveResponse(
        transfer_id=transfer.id,
        state=transfer.state.value,
        device_id=device.id,
        device_status=device.status.value,
    )
