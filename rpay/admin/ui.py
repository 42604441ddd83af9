import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from rpay.db.session import get_db
from rpay.services.auth.login_rate_limit import (
    SCOPE_ADMIN,
    check_login_rate_limit,
    get_client_ip,
    reset_login_attempts,
)
from rpay.services.auth.session import (
    ADMIN_LOGIN_URL,
    current_user_id,
    login_session,
    require_admin,
)
from rpay.services.users.service import UserError, UserService
from rpay.web.templating import templates


logger = logging.getLogger("admin")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "login.html", {"action": ADMIN_LOGIN_URL, "admin": True})


@router.post("/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    client_ip = get_client_ip(request)
    if not check_login_rate_limit(client_ip, SCOPE_ADMIN):
        return RedirectResponse(url=f"{ADMIN_LOGIN_URL}?error=Too many login attempts", status_code=303)
    try:
        admin = UserService(db).authenticate(email, password, admin_only=True)
    except UserError as e:
        logger.warning("admin_login_failed", extra={"ip": client_ip, "reason": e.reason.value})
        return RedirectResponse(url=f"{ADMIN_LOGIN_URL}?error={e.message}", status_code=303)

    reset_login_attempts(client_ip, SCOPE_ADMIN)
    login_session(request, admin.id, admin.username, is_admin=True)
    logger.info("admin_login_succeeded", extra={"user_id": admin.id, "ip": client_ip})
    return RedirectResponse(url="/admin", status_code=303)


@router.get("", response_class=HTMLResponse)
def panel(request: Request, db: Session = Depends(get_db)):
    redirect = require_admin(request)
    if redirect:
        return redirect
    return templates.TemplateResponse(
        request, "admin.html", {"users": UserService(db).list_customers()}
    )


@router.post("/verify-api-key/{user_id}")
def verify_api_key(user_id: int, request: Request, db: Session = Depends(get_db)) -> RedirectResponse:
    redirect = require_admin(request)
    if redirect:
        return redirect
    count = UserService(db).verify_api_keys(user_id)
    if not count:
        return RedirectResponse(url="/admin?error=No API keys to verify", status_code=303)
    return RedirectResponse(url="/admin?success=API key verified", status_code=303)


@router.post("/delete-user/{user_id}")
def delete_user(user_id: int, request: Request, db: Session = Depends(get_db)) -> RedirectResponse:
    redirect = require_admin(request)
    if redirect:
        return redirect
    try:
        UserService(db).delete_user(user_id, acting_user_id=current_user_id(request))
    except UserError as e:
        return RedirectResponse(url=f"/admin?error={e.message}", status_code=303)
    return RedirectResponse(url="/admin?success=User deleted", status_code=303)
