from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from rpay.db.session import get_db
from rpay.services.auth.session import current_user_id
from rpay.services.users.service import UserService


router = APIRouter(prefix="/api", tags=["api"])


@router.get("/balance")
def balance(request: Request, db: Session = Depends(get_db)):
    user_id = current_user_id(request)
    if user_id is None:
        return JSONResponse({"status": False, "message": "Not logged in"}, status_code=401)
    saldo = UserService(db).get_balance(user_id)
    if saldo is None:
        return {"status": False, "message": "User not found"}
    return {"status": True, "balance": saldo}
