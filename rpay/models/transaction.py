"""
Transaction model for QRIS deposits.
reff_id is chosen by the API consumer and is globally unique.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from rpay.db.base import Base


STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reff_id = Column(String, unique=True, nullable=False)
    nominal = Column(Integer, nullable=False)
    qr_string = Column(Text, nullable=True)
    qr_image = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=STATUS_PENDING)  # pending / success / expired / failed
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    expired_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="transactions")
