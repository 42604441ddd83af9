import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from rpay.db.session import get_db
from rpay.services.auth.login_rate_limit import (
    check_login_rate_limit,
    get_client_ip,
    reset_login_attempts,
)
from rpay.services.auth.session import (
    USER_LOGIN_URL,
    current_user_id,
    login_session,
    logout_session,
)
from rpay.services.users.service import UserError, UserService
from rpay.web.templating import templates


logger = logging.getLogger("auth")

router = APIRouter(tags=["auth"])


@router.get("/auth/register", response_class=HTMLResponse)
def register_page(request: Request):
    if current_user_id(request) is not None:
        return RedirectResponse(url="/dashboard", status_code=303)
    return templates.TemplateResponse(request, "register.html", {})


@router.post("/auth/register")
def register(
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    try:
        UserService(db).register(username, email, password)
    except UserError as e:
        return RedirectResponse(url=f"/auth/register?error={e.message}", status_code=303)
    return RedirectResponse(url=f"{USER_LOGIN_URL}?success=Registration successful", status_code=303)


@router.get("/auth/login", response_class=HTMLResponse)
def login_page(request: Request):
    if current_user_id(request) is not None:
        return RedirectResponse(url="/dashboard", status_code=303)
    return templates.TemplateResponse(request, "login.html", {"action": USER_LOGIN_URL})


@router.post("/auth/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    client_ip = get_client_ip(request)
    if not check_login_rate_limit(client_ip):
        return RedirectResponse(url=f"{USER_LOGIN_URL}?error=Too many login attempts", status_code=303)
    try:
        user = UserService(db).authenticate(email, password)
    except UserError as e:
        logger.info("login_failed", extra={"ip": client_ip, "reason": e.reason.value})
        return RedirectResponse(url=f"{USER_LOGIN_URL}?error={e.message}", status_code=303)

    reset_login_attempts(client_ip)
    login_session(request, user.id, user.username, user.is_admin)
    logger.info("login_succeeded", extra={"user_id": user.id, "ip": client_ip})
    return RedirectResponse(url="/dashboard", status_code=303)


@router.get("/logout")
def logout(request: Request) -> RedirectResponse:
    logout_session(request)
    return RedirectResponse(url="/", status_code=303)
