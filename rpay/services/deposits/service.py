"""
DepositService: QRIS deposit lifecycle.

Responsibilities:
- Create a charge at the processor and persist it as a pending transaction
- Reconcile status by pulling from the processor (status endpoint)
- Reconcile status from processor pushes (webhook)
- Settle: mark success and credit the owner's balance, net of the fee, exactly once
- Lightweight local-only polling
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rpay.core.config import settings
from rpay.db.base import MAX_AMOUNT
from rpay.models.api_key import ApiKey
from rpay.models.transaction import STATUS_PENDING, STATUS_SUCCESS, Transaction
from rpay.models.user import User
from rpay.services.atlantic.client import AtlanticClient, UpstreamError
from rpay.services.webhooks.service import WebhookLogService
from rpay.utils.metrics import (
    deposits_created_total,
    deposits_rejected_total,
    deposits_settled_total,
    webhooks_received_total,
)

logger = logging.getLogger(__name__)

REFF_ID_MAX_LENGTH = 64


class DepositErrorReason(str, Enum):
    INVALID_REQUEST = "invalid_request"
    INVALID_API_KEY = "invalid_api_key"
    API_KEY_NOT_VERIFIED = "api_key_not_verified"
    DUPLICATE_REFF_ID = "duplicate_reff_id"
    NOT_FOUND = "not_found"
    UPSTREAM_FAILED = "upstream_failed"
    PERSISTENCE_FAILED = "persistence_failed"


_DEFAULT_MESSAGES = {
    DepositErrorReason.INVALID_REQUEST: "Invalid request",
    DepositErrorReason.INVALID_API_KEY: "Invalid API Key",
    DepositErrorReason.API_KEY_NOT_VERIFIED: "API Key not verified",
    DepositErrorReason.DUPLICATE_REFF_ID: "reff_id already used",
    DepositErrorReason.NOT_FOUND: "Transaction not found",
    DepositErrorReason.UPSTREAM_FAILED: "Failed to create QRIS payment",
    DepositErrorReason.PERSISTENCE_FAILED: "Failed to save transaction",
}


class DepositError(Exception):
    def __init__(self, reason: DepositErrorReason, message: str | None = None):
        self.reason = reason
        self.message = message or _DEFAULT_MESSAGES[reason]
        super().__init__(self.message)


@dataclass(frozen=True)
class Settlement:
    nominal: int
    fee: int
    credited: int


def compute_settlement(
    nominal: int,
    fee_rate: Decimal | None = None,
    fee_flat: int | None = None,
) -> Settlement:
    """fee = floor(nominal * rate) + flat; credited = nominal - fee."""
    rate = settings.settlement_fee_rate if fee_rate is None else Decimal(fee_rate)
    flat = settings.settlement_fee_flat if fee_flat is None else fee_flat
    percent_part = (Decimal(nominal) * rate).to_integral_value(rounding=ROUND_FLOOR)
    fee = int(percent_part) + flat
    return Settlement(nominal=nominal, fee=fee, credited=nominal - fee)


def poll_message(status: str) -> str:
    if status == STATUS_SUCCESS:
        return "Payment successful"
    if status == STATUS_PENDING:
        return "Waiting for payment"
    return "Payment expired/failed"


class DepositService:
    def __init__(self, db: Session, upstream: AtlanticClient | None = None):
        self.db = db
        self.upstream = upstream

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _find_api_key(self, apikey: str | None) -> ApiKey | None:
        if not apikey:
            return None
        return self.db.query(ApiKey).filter(ApiKey.api_key == apikey).one_or_none()

    def resolve_api_key(self, apikey: str | None) -> ApiKey:
        """Return a verified API key or raise. The key decides the owning user."""
        key = self._find_api_key(apikey)
        if key is None:
            raise DepositError(DepositErrorReason.INVALID_API_KEY)
        if not key.verified:
            raise DepositError(DepositErrorReason.API_KEY_NOT_VERIFIED)
        return key

    def get_by_reff_id(self, reff_id: str) -> Transaction | None:
        return self.db.query(Transaction).filter(Transaction.reff_id == reff_id).one_or_none()

    def _owned_transaction(self, user_id: int, reff_id: str | None) -> Transaction | None:
        if not reff_id:
            return None
        return (
            self.db.query(Transaction)
            .filter(Transaction.reff_id == reff_id, Transaction.user_id == user_id)
            .one_or_none()
        )

    def get_for_payment_page(self, reff_id: str, apikey: str) -> Transaction | None:
        """Transaction shown on the public payment page; apikey must belong to its owner."""
        key = self._find_api_key(apikey)
        if key is None:
            return None
        return self._owned_transaction(key.user_id, reff_id)

    def recent_for_user(self, user_id: int, limit: int = 10) -> list[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_request(reff_id: str | None, nominal: Any) -> tuple[str, int]:
        reff_id = (reff_id or "").strip()
        if not reff_id:
            raise DepositError(DepositErrorReason.INVALID_REQUEST, "reff_id is required")
        if len(reff_id) > REFF_ID_MAX_LENGTH:
            raise DepositError(
                DepositErrorReason.INVALID_REQUEST,
                f"reff_id must be at most {REFF_ID_MAX_LENGTH} characters",
            )
        try:
            amount = int(str(nominal).strip())
        except (TypeError, ValueError):
            raise DepositError(DepositErrorReason.INVALID_REQUEST, "nominal must be an integer")
        if amount < settings.deposit_min_nominal:
            raise DepositError(
                DepositErrorReason.INVALID_REQUEST,
                f"nominal must be at least {settings.deposit_min_nominal}",
            )
        if amount > MAX_AMOUNT:
            raise DepositError(DepositErrorReason.INVALID_REQUEST, "nominal is too large")
        return reff_id, amount

    def create(self, apikey: str | None, reff_id: str | None, nominal: Any) -> Transaction:
        """
        Create a QRIS deposit for the owner of `apikey`.
        Raises DepositError with a machine-readable reason on rejection.
        """
        try:
            key = self.resolve_api_key(apikey)
            reff_id, amount = self._validate_request(reff_id, nominal)
            if self.get_by_reff_id(reff_id) is not None:
                raise DepositError(DepositErrorReason.DUPLICATE_REFF_ID)
        except DepositError as e:
            deposits_rejected_total.labels(reason=e.reason.value).inc()
            raise

        try:
            charge = self.upstream.create_charge(reff_id, amount)
        except UpstreamError as e:
            deposits_rejected_total.labels(reason=DepositErrorReason.UPSTREAM_FAILED.value).inc()
            logger.warning(
                "deposit_create_upstream_failed",
                extra={"reff_id": reff_id, "error": str(e)},
            )
            raise DepositError(DepositErrorReason.UPSTREAM_FAILED) from e

        now = datetime.now(timezone.utc)
        txn = Transaction(
            user_id=key.user_id,
            reff_id=reff_id,
            nominal=amount,
            qr_string=charge.qr_string,
            qr_image=charge.qr_image,
            status=STATUS_PENDING,
            created_at=now,
            expired_at=now + timedelta(minutes=settings.deposit_expiry_minutes),
        )
        try:
            self.db.add(txn)
            self.db.commit()
        except IntegrityError as e:
            # Lost a race against another request with the same reff_id
            self.db.rollback()
            deposits_rejected_total.labels(reason=DepositErrorReason.DUPLICATE_REFF_ID.value).inc()
            raise DepositError(DepositErrorReason.DUPLICATE_REFF_ID) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("deposit_persist_failed", extra={"reff_id": reff_id})
            raise DepositError(DepositErrorReason.PERSISTENCE_FAILED) from e
        self.db.refresh(txn)

        deposits_created_total.inc()
        logger.info(
            "deposit_created",
            extra={"reff_id": reff_id, "user_id": key.user_id, "nominal": amount},
        )
        return txn

    # ------------------------------------------------------------------
    # Settlement (atomic)
    # ------------------------------------------------------------------

    def settle(self, txn: Transaction, source: str, extra_values: dict[str, Any] | None = None) -> bool:
        """
        Mark `txn` success and credit its owner, in one DB transaction.
        The status flip is conditional on the row not already being success, and
        the credit only happens if this call flipped it. Returns True if credited.
        """
        txn_id, user_id, reff_id = txn.id, txn.user_id, txn.reff_id
        settlement = compute_settlement(txn.nominal)
        try:
            result = self.db.execute(
                update(Transaction)
                .where(Transaction.id == txn_id, Transaction.status != STATUS_SUCCESS)
                .values(status=STATUS_SUCCESS, **(extra_values or {}))
            )
            if result.rowcount != 1:
                self.db.rollback()
                logger.info("deposit_already_settled", extra={"reff_id": reff_id, "source": source})
                return False
            self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(saldo=User.saldo + settlement.credited)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("deposit_settle_failed", extra={"reff_id": reff_id, "source": source})
            raise

        deposits_settled_total.labels(source=source).inc()
        logger.info(
            "deposit_settled",
            extra={
                "reff_id": reff_id,
                "user_id": user_id,
                "nominal": settlement.nominal,
                "fee": settlement.fee,
                "credited": settlement.credited,
                "source": source,
            },
        )
        return True

    # ------------------------------------------------------------------
    # Reconcile (pull)
    # ------------------------------------------------------------------

    def status(self, apikey: str | None, reff_id: str | None) -> Transaction:
        """Status endpoint: the key owner's transaction, refreshed from the processor."""
        key = self.resolve_api_key(apikey)
        txn = self._owned_transaction(key.user_id, reff_id)
        if txn is None:
            raise DepositError(DepositErrorReason.NOT_FOUND)
        try:
            return self.reconcile(txn)
        except SQLAlchemyError as e:
            raise DepositError(DepositErrorReason.PERSISTENCE_FAILED, "Failed to update transaction") from e

    def reconcile(self, txn: Transaction) -> Transaction:
        """
        Pull the processor status for `txn` and apply it locally.
        Already-settled transactions are returned without an upstream call.
        If the processor is unreachable the last known local state is returned.
        """
        if txn.status == STATUS_SUCCESS:
            return txn

        previous_status = txn.status
        try:
            charge = self.upstream.get_status(txn.reff_id)
        except UpstreamError as e:
            logger.warning(
                "deposit_status_upstream_failed",
                extra={"reff_id": txn.reff_id, "error": str(e)},
            )
            return txn

        qr_updates = {
            name: value
            for name, value in (("qr_string", charge.qr_string), ("qr_image", charge.qr_image))
            if value and value != getattr(txn, name)
        }

        if charge.status == STATUS_SUCCESS:
            self.settle(txn, source="pull", extra_values=qr_updates)
        elif charge.status != previous_status or qr_updates:
            values = dict(qr_updates)
            if charge.status != previous_status:
                values["status"] = charge.status
            try:
                self.db.execute(
                    update(Transaction)
                    .where(Transaction.id == txn.id, Transaction.status != STATUS_SUCCESS)
                    .values(**values)
                )
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("deposit_status_update_failed", extra={"reff_id": txn.reff_id})
                raise
            if "status" in values:
                logger.info(
                    "deposit_status_changed",
                    extra={"reff_id": txn.reff_id, "status": previous_status, "upstream_status": charge.status},
                )

        self.db.refresh(txn)
        return txn

    # ------------------------------------------------------------------
    # Reconcile (push)
    # ------------------------------------------------------------------

    def handle_webhook(self, raw_body: str, payload: Any) -> bool:
        """
        Record the delivery verbatim, then settle if it reports exactly "success"
        for a known, not-yet-settled transaction. Returns True if a balance was credited.
        Persistence failures are logged, never raised. No authenticity check is
        performed on the delivery.
        """
        data = payload if isinstance(payload, dict) else {}
        reff_id = data.get("reff_id")
        reff_id = str(reff_id) if reff_id not in (None, "") else None
        status = data.get("status")
        status = str(status) if status not in (None, "") else None

        try:
            WebhookLogService(self.db).record(reff_id=reff_id, status=status, payload=raw_body)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("webhook_log_failed", extra={"reff_id": reff_id})
        webhooks_received_total.labels(status=status or "unknown").inc()

        if status != STATUS_SUCCESS or reff_id is None:
            return False
        txn = self.get_by_reff_id(reff_id)
        if txn is None:
            logger.warning("webhook_unknown_reference", extra={"reff_id": reff_id})
            return False
        if txn.status == STATUS_SUCCESS:
            return False
        try:
            return self.settle(txn, source="webhook")
        except SQLAlchemyError:
            # settle() already rolled back and logged
            return False

    # ------------------------------------------------------------------
    # Poll (local only)
    # ------------------------------------------------------------------

    def poll(self, apikey: str | None, reff_id: str | None) -> dict[str, str]:
        key = self._find_api_key(apikey)
        if key is None or not key.verified:
            return {"status": "invalid_api"}
        txn = self._owned_transaction(key.user_id, reff_id)
        if txn is None:
            return {"status": "not_found"}
        return {"status": txn.status, "message": poll_message(txn.status)}
