# Payment Ledger for the Campaign Engine
# Fees, payment creation, settlement and earnings accrual
#
# Processing runs in three steps:
#   1. PENDING -> PROCESSING, committed before any money moves
#   2. settlement gateway call (may fail or time out)
#   3. PROCESSING -> COMPLETED, content -> PAID and earnings increment, in one transaction
# Only the request that wins step 1 ever reaches step 3, so earnings are credited once.

import uuid
import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config.app_config import (
    PLATFORM_FEE_PERCENT,
    SETTLEMENT_TIMEOUT_SECONDS,
    PAYMENT_RECONCILE_AFTER_MINUTES,
)
from database.models import User, UserType
from database.marketplace_models import (
    ContentSubmission, ContentStatusDB,
    Payment, PaymentStatusDB, ACTIVE_PAYMENT_STATUSES,
    UserEarnings,
)
from auth.policy import ensure_authorized
from auth.roles import Action
from core.errors import (
    NotFound, BadRequest, Forbidden, InvalidState, Conflict,
    SettlementFailed, SettlementPending,
)
from core.settlement import SettlementGateway, get_settlement_gateway, SETTLED, FAILED
from schemas.marketplace import PaymentCreate, PaymentProcess, PaymentFilter
from services.common import transaction, paginate, SweepResult
from services.notification_service import NotificationService, NotificationType
from services.transitions import PAYMENT_TRANSITIONS, assert_transition, compare_and_set

logger = logging.getLogger(__name__)

MONEY_QUANTUM = Decimal("0.000001")


def compute_fees(amount, fee_percent=PLATFORM_FEE_PERCENT) -> Tuple[Decimal, Decimal]:
    """
    Split an amount into (platform_fee, net_amount).

    platform_fee = amount * fee_percent / 100 exactly. Amounts whose fee would need
    more than the column's six decimals are refused rather than rounded.
    net_amount is whatever is left, so the two always add back up to amount.
    """
    amount = Decimal(str(amount))
    exact_fee = amount * Decimal(str(fee_percent)) / Decimal(100)
    platform_fee = exact_fee.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
    if platform_fee != exact_fee:
        raise BadRequest(f"Amount {amount} is too precise for a {fee_percent}% fee")
    net_amount = amount - platform_fee
    return platform_fee, net_amount


def generate_transaction_id() -> str:
    return f"TXN_{uuid.uuid4().hex}"


class PaymentLedger:
    """Creates and settles payments for completed content."""

    def __init__(
        self,
        db: Session,
        fee_percent=PLATFORM_FEE_PERCENT,
        gateway: Optional[SettlementGateway] = None,
        notifier: Optional[NotificationService] = None,
        settlement_timeout: float = SETTLEMENT_TIMEOUT_SECONDS,
    ):
        self.db = db
        self.fee_percent = Decimal(str(fee_percent))
        self.gateway = gateway or get_settlement_gateway()
        self.notifier = notifier or NotificationService(db)
        self.settlement_timeout = settlement_timeout

    def compute_fees(self, amount, fee_percent=None) -> Tuple[Decimal, Decimal]:
        return compute_fees(amount, self.fee_percent if fee_percent is None else fee_percent)

    def _get_or_404(self, payment_id: str) -> Payment:
        payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            raise NotFound("Payment not found")
        return payment

    def _find_active_payment(self, content_id: str) -> Optional[Payment]:
        return self.db.query(Payment).filter(
            Payment.content_id == content_id,
            Payment.status.in_(ACTIVE_PAYMENT_STATUSES),
        ).first()

    # =========================================================================
    # CREATE
    # =========================================================================

    def create_payment(self, brand: User, data: PaymentCreate) -> Payment:
        ensure_authorized(brand, Action.CREATE_PAYMENT, detail="Only brands can create payments")

        if data.content_id:
            content = self.db.query(ContentSubmission).filter(ContentSubmission.id == data.content_id).first()
            if not content:
                raise NotFound("Content not found")
            if content.influencer_id != data.influencer_id:
                raise BadRequest("Content does not belong to this influencer")
            if content.campaign.brand_id != brand.id:
                raise Forbidden("You can only pay for content in your own campaigns")
            if content.status != ContentStatusDB.COMPLETED:
                raise BadRequest("Content must be completed before payment")

            if self._find_active_payment(content.id):
                raise Conflict("Payment already exists for this content")

        influencer = self.db.query(User).filter(User.id == data.influencer_id).first()
        if not influencer or influencer.user_type != UserType.INFLUENCER:
            raise NotFound("Influencer not found")

        platform_fee, net_amount = self.compute_fees(data.amount)
        payment = Payment(
            content_id=data.content_id,
            influencer_id=data.influencer_id,
            brand_id=brand.id,
            amount=Decimal(str(data.amount)),
            platform_fee=platform_fee,
            net_amount=net_amount,
            payment_method=data.payment_method,
            status=PaymentStatusDB.PENDING,
        )

        try:
            with transaction(self.db):
                self.db.add(payment)
        except IntegrityError:
            # Partial unique index on active payments per content
            raise Conflict("Payment already exists for this content")
        self.db.refresh(payment)

        logger.info(f"Payment {payment.id} created: amount={payment.amount} fee={platform_fee} net={net_amount}")
        return payment

    # =========================================================================
    # PROCESS
    # =========================================================================

    def process_payment(self, brand: User, payment_id: str, data: Optional[PaymentProcess] = None) -> Payment:
        data = data or PaymentProcess()
        payment = self._get_or_404(payment_id)
        ensure_authorized(brand, Action.PROCESS_PAYMENT, payment, detail="You can only process your own payments")

        if payment.status != PaymentStatusDB.PENDING:
            raise InvalidState(f"Payment is {payment.status.value.upper()} and cannot be processed")

        # Step 1: claim the payment
        with transaction(self.db):
            claimed = compare_and_set(
                self.db, Payment, payment.id, PaymentStatusDB.PENDING, PaymentStatusDB.PROCESSING,
                values={
                    "processing_started_at": datetime.utcnow(),
                    "payment_method": data.payment_method or payment.payment_method,
                },
            )
            if not claimed:
                raise InvalidState("Payment is already being processed")
        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} PENDING -> PROCESSING")

        # Step 2: move the money
        try:
            result = self.gateway.settle(payment, timeout=self.settlement_timeout)
        except SettlementFailed as e:
            self._mark_failed(payment, e.detail)
            raise
        except SettlementPending:
            logger.warning(f"Payment {payment.id} settlement pending; left PROCESSING for reconciliation")
            raise
        except Exception as e:
            # Outcome unknown: reconciliation will ask the provider
            logger.exception(f"Settlement of payment {payment.id} raised unexpectedly")
            raise SettlementPending(f"Settlement of payment {payment.id} is pending: {e}") from e

        # Step 3: record it
        transaction_id = data.transaction_id or result.transaction_id or generate_transaction_id()
        return self._finalize(payment, transaction_id)

    def _finalize(self, payment: Payment, transaction_id: str) -> Payment:
        now = datetime.utcnow()
        with transaction(self.db):
            completed = compare_and_set(
                self.db, Payment, payment.id, PaymentStatusDB.PROCESSING, PaymentStatusDB.COMPLETED,
                values={"processed_at": now, "transaction_id": transaction_id},
            )
            if not completed:
                raise InvalidState("Payment is no longer processing")

            if payment.content_id:
                paid = compare_and_set(
                    self.db, ContentSubmission, payment.content_id,
                    ContentStatusDB.COMPLETED, ContentStatusDB.PAID,
                    values={"paid_at": now},
                )
                if not paid:
                    raise Conflict("Content is not awaiting payment")

            self._credit_earnings(payment.influencer_id, payment.net_amount, now)

            self.notifier.notify(NotificationType.PAYMENT_RECEIVED, payment.influencer_id, {
                "payment_id": payment.id,
                "content_id": payment.content_id,
                "net_amount": payment.net_amount,
                "transaction_id": transaction_id,
            })
        self.db.refresh(payment)

        logger.info(f"Payment {payment.id} PROCESSING -> COMPLETED ({transaction_id})")
        return payment

    def _credit_earnings(self, user_id: str, amount: Decimal, now: datetime):
        """Atomic increment of the influencer's earnings row, creating it on first payout."""
        changes = {
            UserEarnings.total_earned: UserEarnings.total_earned + amount,
            UserEarnings.total_paid: UserEarnings.total_paid + amount,
            UserEarnings.last_payout_at: now,
            UserEarnings.updated_at: now,
        }
        updated = self.db.query(UserEarnings).filter(
            UserEarnings.user_id == user_id
        ).update(changes, synchronize_session=False)
        if updated:
            return

        try:
            with self.db.begin_nested():
                self.db.add(UserEarnings(
                    user_id=user_id,
                    total_earned=amount,
                    total_paid=amount,
                    pending_amount=Decimal("0"),
                    last_payout_at=now,
                ))
        except IntegrityError:
            # Created concurrently; fall back to the increment
            self.db.query(UserEarnings).filter(
                UserEarnings.user_id == user_id
            ).update(changes, synchronize_session=False)

    def _mark_failed(self, payment: Payment, reason: Optional[str]):
        with transaction(self.db):
            failed = compare_and_set(
                self.db, Payment, payment.id, PaymentStatusDB.PROCESSING, PaymentStatusDB.FAILED,
                values={"failure_reason": reason, "processed_at": datetime.utcnow()},
            )
            if failed:
                self.notifier.notify(NotificationType.PAYMENT_FAILED, payment.brand_id, {
                    "payment_id": payment.id,
                    "net_amount": payment.net_amount,
                    "reason": reason,
                })
        self.db.refresh(payment)
        logger.warning(f"Payment {payment.id} PROCESSING -> FAILED: {reason}")

    def cancel_payment(self, brand: User, payment_id: str) -> Payment:
        payment = self._get_or_404(payment_id)
        ensure_authorized(brand, Action.PROCESS_PAYMENT, payment, detail="You can only cancel your own payments")

        current = payment.status
        assert_transition("payment", PAYMENT_TRANSITIONS, current, PaymentStatusDB.CANCELLED)

        with transaction(self.db):
            if not compare_and_set(self.db, Payment, payment.id, current, PaymentStatusDB.CANCELLED):
                raise Conflict("Payment was modified concurrently")
        self.db.refresh(payment)

        logger.info(f"Payment {payment.id} cancelled by brand {brand.id}")
        return payment

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def reconcile_processing_payments(
        self,
        now: Optional[datetime] = None,
        stale_after: timedelta = timedelta(minutes=PAYMENT_RECONCILE_AFTER_MINUTES),
    ) -> SweepResult:
        """
        Resolve payments stuck in PROCESSING by asking the gateway what happened.
        Settled transfers are finalized, failed ones marked FAILED, unknown ones left alone.
        """
        now = now or datetime.utcnow()
        result = SweepResult()

        stale_ids = [row[0] for row in self.db.query(Payment.id).filter(
            Payment.status == PaymentStatusDB.PROCESSING,
            Payment.processing_started_at <= now - stale_after,
        ).all()]
        result.candidates = len(stale_ids)

        for payment_id in stale_ids:
            try:
                payment = self._get_or_404(payment_id)
                lookup = self.gateway.lookup(payment.id, timeout=self.settlement_timeout)
                if lookup.status == SETTLED:
                    self._finalize(payment, lookup.transaction_id or payment.transaction_id or generate_transaction_id())
                elif lookup.status == FAILED:
                    self._mark_failed(payment, lookup.message or "Transfer failed")
                else:
                    result.skipped += 1
                    continue
                result.succeeded += 1
            except SettlementPending:
                result.skipped += 1
            except Exception as e:
                self.db.rollback()
                logger.exception(f"Failed to reconcile payment {payment_id}")
                result.record_error(payment_id, e)

        logger.info(
            f"Payment reconciliation: {result.candidates} stale, {result.succeeded} resolved, "
            f"{result.skipped} still pending, {result.failed} failed"
        )
        return result

    # =========================================================================
    # READS
    # =========================================================================

    def get_payment(self, payment_id: str, user: User) -> Payment:
        payment = self._get_or_404(payment_id)
        ensure_authorized(user, Action.VIEW_PAYMENT, payment, detail="You don't have access to this payment")
        return payment

    def list_brand_payments(self, brand: User, filters: Optional[PaymentFilter] = None) -> dict:
        filters = filters or PaymentFilter()
        query = self.db.query(Payment).filter(Payment.brand_id == brand.id)
        if filters.status:
            query = query.filter(Payment.status == filters.status)
        query = query.order_by(Payment.created_at.desc())
        return paginate(query, filters.page, filters.limit, "payments")

    def list_influencer_payments(self, influencer: User, filters: Optional[PaymentFilter] = None) -> dict:
        filters = filters or PaymentFilter()
        query = self.db.query(Payment).filter(Payment.influencer_id == influencer.id)
        if filters.status:
            query = query.filter(Payment.status == filters.status)
        query = query.order_by(Payment.created_at.desc())
        return paginate(query, filters.page, filters.limit, "payments")

    def get_earnings(self, user: User) -> dict:
        earnings = self.db.query(UserEarnings).filter(UserEarnings.user_id == user.id).first()
        if not earnings:
            return {
                "total_earned": Decimal("0"),
                "total_paid": Decimal("0"),
                "pending_amount": Decimal("0"),
                "last_payout_at": None,
            }
        return {
            "total_earned": earnings.total_earned,
            "total_paid": earnings.total_paid,
            "pending_amount": earnings.pending_amount,
            "last_payout_at": earnings.last_payout_at,
        }

    def get_payment_stats(self, user: User) -> dict:
        """Count and sum per status. Brands see gross amounts, influencers net earnings."""
        if user.user_type == UserType.INFLUENCER:
            column, owner, total_key, amount_key = Payment.net_amount, Payment.influencer_id, "total_earnings", "earnings"
        else:
            column, owner, total_key, amount_key = Payment.amount, Payment.brand_id, "total_amount", "amount"

        query = self.db.query(Payment.status, func.count(Payment.id), func.sum(column))
        if user.user_type != UserType.ADMIN:
            query = query.filter(owner == user.id)
        rows = query.group_by(Payment.status).all()

        by_status = {}
        for status, count, total in rows:
            by_status[PaymentStatusDB(status).value] = {
                "count": count,
                amount_key: Decimal(str(total or 0)),
            }

        return {
            "total_payments": sum(s["count"] for s in by_status.values()),
            total_key: sum((s[amount_key] for s in by_status.values()), Decimal("0")),
            "by_status": by_status,
        }
