from sqlalchemy.orm import Session

from rpay.models.webhook_log import WebhookLog


class WebhookLogService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def record(self, reff_id: str | None, status: str | None, payload: str) -> WebhookLog:
        entry = WebhookLog(reff_id=reff_id, status=status, payload=payload)
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry
