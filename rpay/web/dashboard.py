from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from rpay.db.session import get_db
from rpay.services.auth.session import current_user_id, logout_session, require_login
from rpay.services.deposits.service import DepositService
from rpay.services.users.service import UserService
from rpay.services.withdrawals.service import WithdrawalError, WithdrawalService, contact_link
from rpay.web.templating import templates


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_class=HTMLResponse)
def dashboard(request: Request, db: Session = Depends(get_db)):
    redirect = require_login(request)
    if redirect:
        return redirect
    user_id = current_user_id(request)
    users = UserService(db)
    user = users.get(user_id)
    if user is None:
        # Account was deleted while the session was alive
        logout_session(request)
        return RedirectResponse(url="/auth/login", status_code=303)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": user,
            "api_key": users.verified_api_key(user_id),
            "transactions": DepositService(db).recent_for_user(user_id),
            "withdrawals": WithdrawalService(db).recent_for_user(user_id),
        },
    )


@router.get("/api-keys", response_class=HTMLResponse)
def api_keys(request: Request, db: Session = Depends(get_db)):
    redirect = require_login(request)
    if redirect:
        return redirect
    return templates.TemplateResponse(
        request,
        "api_keys.html",
        {"api_keys": UserService(db).list_api_keys(current_user_id(request))},
    )


@router.post("/api-keys/generate")
def generate_api_key(request: Request, db: Session = Depends(get_db)) -> RedirectResponse:
    redirect = require_login(request)
    if redirect:
        return redirect
    UserService(db).generate_api_key(current_user_id(request))
    return RedirectResponse(
        url="/dashboard/api-keys?success=API key generated, waiting for admin verification",
        status_code=303,
    )


@router.post("/withdraw")
def withdraw(request: Request, nominal: str = Form(""), db: Session = Depends(get_db)) -> RedirectResponse:
    """Debit the balance, then hand the user over to the admin on WhatsApp."""
    redirect = require_login(request)
    if redirect:
        return redirect
    try:
        withdrawal = WithdrawalService(db).create(current_user_id(request), nominal)
    except WithdrawalError as e:
        return RedirectResponse(url=f"/dashboard?error={e.message}", status_code=303)
    return RedirectResponse(url=contact_link(withdrawal.nominal), status_code=303)
