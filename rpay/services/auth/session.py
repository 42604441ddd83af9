"""
Browser session helpers and route guards.
Session data lives in the signed cookie managed by Starlette's SessionMiddleware.
"""
from fastapi import Request
from fastapi.responses import RedirectResponse


USER_LOGIN_URL = "/auth/login"
ADMIN_LOGIN_URL = "/admin/login"


def login_session(request: Request, user_id: int, username: str, is_admin: bool) -> None:
    request.session.clear()
    request.session["user_id"] = user_id
    request.session["username"] = username
    request.session["is_admin"] = bool(is_admin)


def logout_session(request: Request) -> None:
    request.session.clear()


def current_user_id(request: Request) -> int | None:
    user_id = request.session.get("user_id")
    return int(user_id) if user_id is not None else None


def is_admin_session(request: Request) -> bool:
    return current_user_id(request) is not None and bool(request.session.get("is_admin"))


def require_login(request: Request) -> RedirectResponse | None:
    if current_user_id(request) is None:
        return RedirectResponse(url=USER_LOGIN_URL, status_code=303)
    return None


def require_admin(request: Request) -> RedirectResponse | None:
    if not is_admin_session(request):
        return RedirectResponse(url=ADMIN_LOGIN_URL, status_code=303)
    return None
