from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from rpay.db.base import Base


class WebhookLog(Base):
    """Append-only record of every inbound processor webhook, stored verbatim."""

    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reff_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=True)
    payload = Column(Text, nullable=False, default="")
    received_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
