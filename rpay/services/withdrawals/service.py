"""
WithdrawalService: manual balance payouts.
The balance is debited here; the actual disbursement happens out of band
after the user contacts the admin over WhatsApp.
"""
import logging
from enum import Enum
from typing import Any
from urllib.parse import quote

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rpay.core.config import settings
from rpay.db.base import MAX_AMOUNT
from rpay.models.user import User
from rpay.models.withdrawal import Withdrawal
from rpay.utils.metrics import withdrawals_created_total

logger = logging.getLogger(__name__)


class WithdrawalErrorReason(str, Enum):
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    FAILED = "failed"


_MESSAGES = {
    WithdrawalErrorReason.INVALID_AMOUNT: "Invalid amount",
    WithdrawalErrorReason.INSUFFICIENT_BALANCE: "Insufficient balance",
    WithdrawalErrorReason.FAILED: "Withdrawal failed",
}


class WithdrawalError(Exception):
    def __init__(self, reason: WithdrawalErrorReason):
        self.reason = reason
        self.message = _MESSAGES[reason]
        super().__init__(self.message)


def contact_link(nominal: int) -> str:
    """WhatsApp deep link to the admin, carrying the requested amount."""
    message = settings.withdraw_contact_message.format(nominal=nominal)
    return f"https://wa.me/{settings.withdraw_contact_phone}?text={quote(message)}"


class WithdrawalService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: int, nominal: Any) -> Withdrawal:
        """
        Debit `nominal` from the user's balance and record a pending withdrawal.
        The debit is a conditional update (saldo >= nominal) in the same
        transaction as the insert; on rejection nothing is written.
        """
        try:
            amount = int(str(nominal).strip())
        except (TypeError, ValueError):
            raise WithdrawalError(WithdrawalErrorReason.INVALID_AMOUNT)
        if amount <= 0 or amount > MAX_AMOUNT:
            raise WithdrawalError(WithdrawalErrorReason.INVALID_AMOUNT)

        try:
            result = self.db.execute(
                update(User)
                .where(User.id == user_id, User.saldo >= amount)
                .values(saldo=User.saldo - amount)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise WithdrawalError(WithdrawalErrorReason.INSUFFICIENT_BALANCE)
            withdrawal = Withdrawal(user_id=user_id, nominal=amount, status="pending")
            self.db.add(withdrawal)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("withdrawal_failed", extra={"user_id": user_id, "nominal": amount})
            raise WithdrawalError(WithdrawalErrorReason.FAILED) from e
        self.db.refresh(withdrawal)

        withdrawals_created_total.inc()
        logger.info("withdrawal_created", extra={"user_id": user_id, "nominal": amount})
        return withdrawal

    def recent_for_user(self, user_id: int, limit: int = 10) -> list[Withdrawal]:
        return (
            self.db.query(Withdrawal)
            .filter(Withdrawal.user_id == user_id)
            .order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())
            .limit(limit)
            .all()
        )
