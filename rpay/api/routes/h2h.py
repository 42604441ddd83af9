"""
Host-to-host JSON API for QRIS deposits.
Authenticated only by the `apikey` query parameter. Failures are reported in
the body as `{"status": false, "message": ..., "reason": ...}` with HTTP 200.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rpay.api.deps import get_atlantic_client
from rpay.db.session import get_db
from rpay.schemas.deposits import DepositOut, DepositResponse, ErrorResponse
from rpay.services.atlantic.client import AtlanticClient
from rpay.services.deposits.service import DepositError, DepositService


router = APIRouter(prefix="/h2h/deposit", tags=["h2h"])


def _error(e: DepositError) -> dict:
    return ErrorResponse(message=e.message, reason=e.reason.value).model_dump()


@router.get("/create")
def create_deposit(
    apikey: str | None = Query(None),
    reff_id: str | None = Query(None),
    nominal: str | None = Query(None),
    db: Session = Depends(get_db),
    upstream: AtlanticClient = Depends(get_atlantic_client),
):
    """Create a QRIS payment."""
    svc = DepositService(db, upstream)
    try:
        txn = svc.create(apikey, reff_id, nominal)
    except DepositError as e:
        return _error(e)
    return DepositResponse(data=DepositOut.model_validate(txn)).model_dump()


@router.get("/status")
def deposit_status(
    apikey: str | None = Query(None),
    reff_id: str | None = Query(None),
    db: Session = Depends(get_db),
    upstream: AtlanticClient = Depends(get_atlantic_client),
):
    """Check payment status (refreshed from the processor unless already settled)."""
    svc = DepositService(db, upstream)
    try:
        txn = svc.status(apikey, reff_id)
    except DepositError as e:
        return _error(e)
    return DepositResponse(data=DepositOut.model_validate(txn)).model_dump()


@router.get("/poll")
def deposit_poll(
    apikey: str | None = Query(None),
    reff_id: str | None = Query(None),
    db: Session = Depends(get_db),
):
    """Lightweight status polling from local state only."""
    return DepositService(db).poll(apikey, reff_id)
