from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from rpay.core.config import settings
from rpay.db.session import get_db
from rpay.services.auth.session import current_user_id
from rpay.services.deposits.service import DepositService
from rpay.web.templating import templates


router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request, "index.html", {"logged_in": current_user_id(request) is not None}
    )


@router.get("/support", response_class=HTMLResponse)
def support(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request, "support.html", {"contact_phone": settings.withdraw_contact_phone}
    )


@router.get("/docs", response_class=HTMLResponse)
def api_docs(request: Request) -> HTMLResponse:
    base_url = str(request.base_url).rstrip("/")
    return templates.TemplateResponse(
        request,
        "docs.html",
        {"base_url": base_url, "min_nominal": settings.deposit_min_nominal},
    )


@router.get("/pg/{reff_id}/{apikey}", response_class=HTMLResponse)
def payment_page(reff_id: str, apikey: str, request: Request, db: Session = Depends(get_db)) -> HTMLResponse:
    """Public page showing the QR for one transaction; the key must belong to its owner."""
    txn = DepositService(db).get_for_payment_page(reff_id, apikey)
    if txn is None:
        return templates.TemplateResponse(
            request, "error.html", {"message": "Transaction not found"}, status_code=404
        )
    return templates.TemplateResponse(
        request, "payment.html", {"txn": txn, "apikey": apikey}
    )
