import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rpay.db.session import get_db
from rpay.services.deposits.service import DepositService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])


@router.post("/webhook/atlantic")
async def atlantic_webhook(request: Request, db: Session = Depends(get_db)) -> dict:
    """
    Processor push notification. Always answers {"received": true} so the
    processor does not redeliver; failures are logged only.
    """
    raw = (await request.body()).decode("utf-8", errors="replace")
    try:
        payload = json.loads(raw) if raw else {}
    except ValueError:
        payload = {}
    try:
        DepositService(db).handle_webhook(raw, payload)
    except Exception:
        db.rollback()
        logger.exception("webhook_processing_failed")
    return {"received": True}
