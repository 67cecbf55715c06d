"""
Cancellation and refund policy.

``calculate_refund`` is the pure policy: given what was paid, how it was
paid, the session schedule and who cancelled, it splits the refundable
value into a cash refund and wallet credit and applies the admin fee.
``RefundPolicyService`` loads bookings, applies the policy, and records
the outcome (refund transaction, wallet credit, notification).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import DEFAULT_QUERY_LIMIT
from app.core.enums import (
    CreditSource,
    DefaultRefundMethod,
    PaymentMethod,
    PaymentStatus,
    RefundMethod,
    RefundStatus,
)
from app.core.exceptions import (
    ConflictException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from app.models.booking import Booking, BookingStatus
from app.models.payment import RefundTransaction
from app.models.wallet import WalletCredit
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.repositories.factory import RepositoryFactory
from app.services.base import BaseService
from app.services.notification_service import NotificationService
from app.services.stripe_service import StripeService
from app.services.wallet_service import WalletService
from app.utils.money import round_half_up
from app.utils.time_helpers import ensure_utc, hours_between, utcnow

logger = logging.getLogger(__name__)

# Outcome codes recorded on the booking and on refund transactions
OUTCOME_PROVIDER_CANCELLATION = "provider_cancellation"
OUTCOME_FULL_NOTICE = "full_notice"
OUTCOME_SHORT_NOTICE = "short_notice"
OUTCOME_MID_COURSE = "mid_course"
OUTCOME_NO_SHOW = "no_show"
OUTCOME_NOT_PAID = "not_paid"

METHOD_NONE = "none"


@dataclass(frozen=True)
class RefundInputs:
    amount_pence: int
    payment_method: str
    session_starts: Sequence[datetime]
    admin_fee_pence: int
    is_provider_cancellation: bool = False
    refund_method: Optional[str] = None
    default_refund_method: str = DefaultRefundMethod.CREDIT.value
    card_amount_pence: Optional[int] = None
    booking_status: str = BookingStatus.CONFIRMED.value
    payment_status: str = PaymentStatus.PAID.value
    notice_hours: int = 24


@dataclass(frozen=True)
class RefundCalculation:
    outcome: str
    method: str
    refund_pence: int = 0
    credit_pence: int = 0
    admin_fee_pence: int = 0
    refundable_pence: int = 0
    total_sessions: int = 0
    remaining_sessions: int = 0
    hours_before_start: Optional[float] = None
    policy_basis: str = ""

    @property
    def total_pence(self) -> int:
        return self.refund_pence + self.credit_pence

    def to_payload(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "method": self.method,
            "refund_pence": self.refund_pence,
            "credit_pence": self.credit_pence,
            "admin_fee_pence": self.admin_fee_pence,
            "refundable_pence": self.refundable_pence,
            "total_sessions": self.total_sessions,
            "remaining_sessions": self.remaining_sessions,
            "hours_before_start": self.hours_before_start,
            "policy_basis": self.policy_basis,
        }


def card_share_pence(amount_pence: int, payment_method: str, card_amount_pence: Optional[int]) -> int:
    """Portion of a payment that can go back to a card."""
    if payment_method == PaymentMethod.CARD.value:
        return amount_pence
    if payment_method == PaymentMethod.MIXED.value:
        if card_amount_pence is None:
            return round_half_up(Decimal(amount_pence) / 2)
        return max(0, min(card_amount_pence, amount_pence))
    return 0


def _method_for(cash: int, credit: int) -> str:
    if cash and credit:
        return RefundMethod.MIXED.value
    if cash:
        return RefundMethod.CASH.value
    if credit:
        return RefundMethod.CREDIT.value
    return METHOD_NONE


def _resolve_provider_method(refund_method: Optional[str], default_method: str) -> str:
    chosen = refund_method or default_method
    if chosen == DefaultRefundMethod.PARENT_CHOICE.value:
        # No stated preference from the parent
        return RefundMethod.CREDIT.value
    return chosen


def calculate_refund(inputs: RefundInputs, now: datetime) -> RefundCalculation:
    """
    Apply the cancellation policy at time ``now``.

    Provider cancellations return everything with no fee. Parents who cancel
    at least ``notice_hours`` before the first session get the full amount
    minus the admin fee (card money back to card, TFC and voucher money as
    credit). Later cancellations get pro-rata credit for the sessions that
    have not started, minus the fee. A no-show, or a course with every
    session already started, yields nothing.
    """
    if inputs.amount_pence < 0:
        raise ValidationException("Booking amount cannot be negative")

    now = ensure_utc(now)
    starts = sorted(ensure_utc(start) for start in inputs.session_starts)
    total = len(starts)
    used = sum(1 for start in starts if start <= now)
    remaining = total - used
    hours_before = hours_between(now, starts[0]) if starts else None

    def _zero(outcome: str, basis: str) -> RefundCalculation:
        return RefundCalculation(
            outcome=outcome,
            method=METHOD_NONE,
            total_sessions=total,
            remaining_sessions=remaining,
            hours_before_start=hours_before,
            policy_basis=basis,
        )

    if inputs.payment_status != PaymentStatus.PAID.value:
        return _zero(OUTCOME_NOT_PAID, "Payment not received: nothing to refund")

    amount = inputs.amount_pence
    card_share = card_share_pence(amount, inputs.payment_method, inputs.card_amount_pence)

    if inputs.is_provider_cancellation:
        method = _resolve_provider_method(inputs.refund_method, inputs.default_refund_method)
        cash = card_share if method == RefundMethod.CASH.value else 0
        credit = amount - cash
        return RefundCalculation(
            outcome=OUTCOME_PROVIDER_CANCELLATION,
            method=_method_for(cash, credit),
            refund_pence=cash,
            credit_pence=credit,
            admin_fee_pence=0,
            refundable_pence=amount,
            total_sessions=total,
            remaining_sessions=remaining,
            hours_before_start=hours_before,
            policy_basis="Provider cancellation: full refund, no admin fee",
        )

    if inputs.booking_status == BookingStatus.NO_SHOW.value or (total and remaining == 0):
        return _zero(OUTCOME_NO_SHOW, "No-show or all sessions delivered: no refund")

    if used == 0 and (hours_before is None or hours_before >= inputs.notice_hours):
        outcome = OUTCOME_FULL_NOTICE
        basis = f">= {inputs.notice_hours} hours notice: full refund minus admin fee"
        refundable = amount
        cash, credit = card_share, amount - card_share
    else:
        outcome = OUTCOME_MID_COURSE if used else OUTCOME_SHORT_NOTICE
        basis = (
            f"< {inputs.notice_hours} hours notice or course started: "
            f"pro-rata credit for {remaining}/{total} sessions minus admin fee"
        )
        refundable = round_half_up(Decimal(amount) * remaining / total)
        cash, credit = 0, refundable

    fee = max(0, min(inputs.admin_fee_pence, refundable))
    from_cash = min(fee, cash)
    cash -= from_cash
    credit -= fee - from_cash

    return RefundCalculation(
        outcome=outcome,
        method=_method_for(cash, credit),
        refund_pence=cash,
        credit_pence=credit,
        admin_fee_pence=fee,
        refundable_pence=refundable,
        total_sessions=total,
        remaining_sessions=remaining,
        hours_before_start=hours_before,
        policy_basis=basis,
    )


@dataclass
class CancellationResult:
    booking: Booking
    calculation: RefundCalculation
    refund_transaction: Optional[RefundTransaction] = None
    credit: Optional[WalletCredit] = None
    notifications: List[str] = field(default_factory=list)


class RefundPolicyService(BaseService):
    """Cancels bookings and settles what the parent is owed."""

    def __init__(
        self,
        db: Session,
        wallet_service: Optional[WalletService] = None,
        notification_service: Optional[NotificationService] = None,
        stripe_service: Optional[StripeService] = None,
    ):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.refund_repository = RepositoryFactory.create_refund_repository(db)
        self.credit_repository = RepositoryFactory.create_wallet_credit_repository(db)
        self.notification_service = notification_service or NotificationService(db)
        self.wallet_service = wallet_service or WalletService(db, self.notification_service)
        self._stripe_service = stripe_service

    @property
    def stripe_service(self) -> StripeService:
        if self._stripe_service is None:
            self._stripe_service = StripeService(self.db)
        return self._stripe_service

    def _load_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_with_context(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    def _admin_fee_for(self, booking: Booking) -> int:
        provider_settings = booking.activity.venue.provider_settings if booking.activity else None
        if provider_settings is not None and provider_settings.admin_fee_pence is not None:
            return int(provider_settings.admin_fee_pence)
        return settings.platform_admin_fee_pence

    def _build_inputs(
        self,
        booking: Booking,
        *,
        is_provider_cancellation: bool,
        refund_method: Optional[str],
    ) -> RefundInputs:
        activity = booking.activity
        provider_settings = activity.venue.provider_settings if activity else None
        default_method = (
            provider_settings.default_refund_method
            if provider_settings is not None
            else DefaultRefundMethod.CREDIT.value
        )
        return RefundInputs(
            amount_pence=int(booking.amount_pence),
            payment_method=booking.payment_method,
            session_starts=activity.session_starts() if activity else [],
            admin_fee_pence=self._admin_fee_for(booking),
            is_provider_cancellation=is_provider_cancellation,
            refund_method=refund_method,
            default_refund_method=default_method,
            card_amount_pence=booking.card_amount_pence,
            booking_status=booking.status,
            payment_status=booking.payment_status,
            notice_hours=settings.cancellation_notice_hours,
        )

    @BaseService.measure_operation("refund_preview_cancellation")
    def preview_cancellation(
        self,
        booking_id: str,
        *,
        is_provider_cancellation: bool = False,
        refund_method: Optional[str] = None,
        cancelled_at: Optional[datetime] = None,
    ) -> RefundCalculation:
        """Return what cancelling now would pay out, without changing anything."""
        booking = self._load_booking(booking_id)
        if booking.is_cancelled:
            raise ConflictException("Booking is already cancelled", code="ALREADY_CANCELLED")
        inputs = self._build_inputs(
            booking,
            is_provider_cancellation=is_provider_cancellation,
            refund_method=refund_method,
        )
        return calculate_refund(inputs, cancelled_at or utcnow())

    @BaseService.measure_operation("refund_cancel_booking")
    def cancel_booking(
        self,
        booking_id: str,
        *,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        is_provider_cancellation: bool = False,
        refund_method: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        """
        Cancel a booking and settle it.

        Any cash share becomes a pending refund transaction (submitted to
        Stripe by ``process_pending_refunds``); any credit share becomes a
        12-month wallet credit scoped to the booking's venue.
        """
        now = ensure_utc(now or utcnow())
        self._load_booking(booking_id)

        with self.transaction():
            # Refreshed under the row lock; guards and payouts read this copy
            booking = self.booking_repository.get_by_id_for_update(booking_id)
            if booking is None or booking.is_cancelled:
                raise ConflictException("Booking is already cancelled", code="ALREADY_CANCELLED")

            calculation = calculate_refund(
                self._build_inputs(
                    booking,
                    is_provider_cancellation=is_provider_cancellation,
                    refund_method=refund_method,
                ),
                now,
            )
            result = CancellationResult(booking=booking, calculation=calculation)

            booking.status = BookingStatus.CANCELLED.value
            booking.cancelled_at = now
            booking.cancelled_by_id = actor_id
            booking.cancellation_reason = reason
            booking.cancellation_outcome = calculation.outcome
            booking.cancellation_refund_pence = calculation.refund_pence
            booking.cancellation_credit_pence = calculation.credit_pence
            booking.cancellation_fee_pence = calculation.admin_fee_pence
            if booking.payment_status == PaymentStatus.PENDING_PAYMENT.value:
                booking.payment_status = PaymentStatus.CANCELLED.value
            elif calculation.total_pence > 0:
                booking.payment_status = PaymentStatus.REFUNDED.value

            if calculation.refund_pence > 0:
                result.refund_transaction = self.refund_repository.create(
                    booking_id=booking.id,
                    parent_id=booking.parent_id,
                    amount_pence=calculation.refund_pence,
                    fee_pence=calculation.admin_fee_pence,
                    method=PaymentMethod.CARD.value,
                    reason=calculation.outcome,
                    status=RefundStatus.PENDING.value,
                    admin_id=actor_id,
                    audit_trail={
                        "calculation": calculation.to_payload(),
                        "cancelled_at": now.isoformat(),
                        "actor_id": actor_id,
                    },
                )

            if calculation.credit_pence > 0:
                source = (
                    CreditSource.PROVIDER_CANCELLATION
                    if is_provider_cancellation
                    else CreditSource.CANCELLATION
                )
                result.credit = self.wallet_service.add_credit(
                    parent_id=booking.parent_id,
                    amount_pence=calculation.credit_pence,
                    source=source,
                    provider_id=booking.activity.venue_id if booking.activity else None,
                    booking_id=booking.id,
                    description=f"Cancellation credit for booking {booking.id}",
                    now=now,
                )

            self.notification_service.notify_booking_cancelled(
                booking,
                refund_pence=calculation.refund_pence,
                credit_pence=calculation.credit_pence,
                admin_fee_pence=calculation.admin_fee_pence,
            )

        if result.refund_transaction is not None:
            prometheus_metrics.inc_refund(RefundStatus.PENDING.value)
        if result.credit is not None:
            prometheus_metrics.add_credits_issued(result.credit.source, result.credit.amount_pence)
        self.log_operation(
            "booking_cancelled",
            booking_id=booking.id,
            outcome=calculation.outcome,
            refund_pence=calculation.refund_pence,
            credit_pence=calculation.credit_pence,
            admin_fee_pence=calculation.admin_fee_pence,
        )
        return result

    @BaseService.measure_operation("refund_get_cancellation_history")
    def get_cancellation_history(self, booking_id: str) -> Dict[str, Any]:
        booking = self._load_booking(booking_id)
        return {
            "booking_id": booking.id,
            "status": booking.status,
            "payment_status": booking.payment_status,
            "cancelled_at": booking.cancelled_at,
            "cancelled_by_id": booking.cancelled_by_id,
            "cancellation_reason": booking.cancellation_reason,
            "outcome": booking.cancellation_outcome,
            "refund_pence": booking.cancellation_refund_pence or 0,
            "credit_pence": booking.cancellation_credit_pence or 0,
            "admin_fee_pence": booking.cancellation_fee_pence or 0,
            "refund_transactions": self.refund_repository.get_for_booking(booking.id),
            "credits": self.credit_repository.get_for_source_booking(booking_id=booking.id),
        }

    @BaseService.measure_operation("refund_get_cancellation_stats")
    def get_cancellation_stats(self, *, venue_id: Optional[str] = None) -> Dict[str, Any]:
        bookings = self.refund_repository.get_cancelled_bookings(venue_id=venue_id)
        refunds = self.refund_repository.get_for_bookings([b.id for b in bookings])

        by_outcome: Dict[str, int] = {}
        for booking in bookings:
            key = booking.cancellation_outcome or "unknown"
            by_outcome[key] = by_outcome.get(key, 0) + 1

        refunds_by_status: Dict[str, int] = {}
        for refund in refunds:
            refunds_by_status[refund.status] = refunds_by_status.get(refund.status, 0) + 1

        return {
            "total_cancellations": len(bookings),
            "provider_cancellations": by_outcome.get(OUTCOME_PROVIDER_CANCELLATION, 0),
            "parent_cancellations": len(bookings) - by_outcome.get(OUTCOME_PROVIDER_CANCELLATION, 0),
            "by_outcome": by_outcome,
            "total_refunded_pence": sum(b.cancellation_refund_pence or 0 for b in bookings),
            "total_credited_pence": sum(b.cancellation_credit_pence or 0 for b in bookings),
            "total_fees_pence": sum(b.cancellation_fee_pence or 0 for b in bookings),
            "refunds_by_status": refunds_by_status,
        }

    @BaseService.measure_operation("refund_process_pending")
    def process_pending_refunds(self, *, limit: int = DEFAULT_QUERY_LIMIT) -> Dict[str, int]:
        """
        Submit pending cash refunds to Stripe.

        Refunds whose booking has no payment intent stay pending for manual
        processing. A Stripe failure marks that refund ``failed`` and the
        batch carries on.
        """
        counts = {"processed": 0, "failed": 0, "skipped": 0}
        pending = self.refund_repository.get_pending(limit=limit)

        for refund in pending:
            intent_id = refund.booking.stripe_payment_intent_id if refund.booking else None
            if not intent_id or not self.stripe_service.stripe_configured:
                counts["skipped"] += 1
                continue

            try:
                stripe_refund = self.stripe_service.create_refund(
                    payment_intent_id=intent_id,
                    amount_pence=refund.amount_pence,
                    metadata={"booking_id": refund.booking_id, "refund_id": refund.id},
                    idempotency_key=f"refund:{refund.id}",
                )
            except ServiceException as exc:
                with self.transaction():
                    refund.status = RefundStatus.FAILED.value
                    refund.failure_reason = exc.message
                counts["failed"] += 1
                prometheus_metrics.inc_refund(RefundStatus.FAILED.value)
                self.logger.warning(
                    "Refund %s failed: %s", refund.id, exc.message, extra={"refund_id": refund.id}
                )
                continue

            with self.transaction():
                refund.status = RefundStatus.PROCESSED.value
                refund.stripe_refund_id = stripe_refund["id"]
                refund.processed_at = utcnow()
            counts["processed"] += 1
            prometheus_metrics.inc_refund(RefundStatus.PROCESSED.value)

        if pending:
            self.logger.info("Processed pending refunds", extra=counts)
        return counts


__all__ = [
    "CancellationResult",
    "RefundCalculation",
    "RefundInputs",
    "RefundPolicyService",
    "calculate_refund",
    "card_share_pence",
]
