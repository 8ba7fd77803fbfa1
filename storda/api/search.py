"""Public IMEI check API endpoint."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from storda.database import get_session
from storda.schemas.device import ImeiCheckResponse
from storda.services.device_service import check_imei

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/imei/{imei}", response_model=ImeiCheckResponse)
def search_imei(imei: str, session: Session = Depends(get_session)):
    """Check whether an IMEI is registered or reported (no auth required)."""
    return ImeiCheckResponse(**check_imei(imei, session))
