# backend/app/services/tfc_service.py
"""
Tax-Free Childcare (TFC) payment lifecycle.

A TFC booking is held while the parent pays through the government
scheme. The booking gets a reference (``TFC-YYYYMMDD-XXXXXX``) and a
deadline; an admin confirms the payment when it lands, otherwise the
deadline sweep releases the place. Payment status only ever moves
``pending_payment -> paid`` or ``pending_payment -> cancelled``.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
import logging
import math
import secrets
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    MAX_BULK_CONFIRM,
    TFC_AUTO_CANCEL_REASON,
    TFC_DEFAULT_INSTRUCTIONS,
    TFC_DEFAULT_PAYEE_NAME,
    TFC_DEFAULT_PAYEE_REFERENCE,
    TFC_REFERENCE_MAX_ATTEMPTS,
    TFC_REFERENCE_PREFIX,
    TFC_REFERENCE_SUFFIX_MAX,
    TFC_REFERENCE_SUFFIX_MIN,
)
from ..core.enums import PaymentMethod, PaymentStatus
from ..core.exceptions import (
    ConflictException,
    DomainException,
    InvalidPaymentStateException,
    NotFoundException,
    ServiceException,
    TfcNotEnabledException,
    ValidationException,
)
from ..models.booking import Booking, BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..utils.time_helpers import ensure_utc, hours_between, utcnow
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_UNPAID_REASON = "Payment not received by deadline"
SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class TfcProviderConfig:
    venue_id: str
    tfc_enabled: bool
    hold_period_days: int
    instructions: str
    payee_name: str
    payee_reference: str
    sort_code: Optional[str] = None
    account_number: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


def format_reference(created_at: datetime, suffix: int) -> str:
    return f"{TFC_REFERENCE_PREFIX}-{ensure_utc(created_at):%Y%m%d}-{suffix:06d}"


class TfcService(BaseService):
    """Issues TFC references and moves TFC bookings through their payment states."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.venue_repository = RepositoryFactory.create_venue_repository(db)
        self.notification_service = notification_service or NotificationService(db)

    # References and configuration

    def generate_reference(self, now: Optional[datetime] = None) -> str:
        """Return a fresh reference dated ``now`` (UTC) with a random 6-digit suffix."""
        suffix = TFC_REFERENCE_SUFFIX_MIN + secrets.randbelow(
            TFC_REFERENCE_SUFFIX_MAX - TFC_REFERENCE_SUFFIX_MIN + 1
        )
        return format_reference(now or utcnow(), suffix)

    def _unique_reference(self, now: datetime) -> str:
        for _ in range(TFC_REFERENCE_MAX_ATTEMPTS):
            reference = self.generate_reference(now)
            if not self.booking_repository.tfc_reference_exists(reference):
                return reference
        raise ServiceException(
            "Could not allocate a unique TFC reference", code="TFC_REFERENCE_EXHAUSTED"
        )

    @BaseService.measure_operation("tfc_get_provider_config")
    def get_provider_config(self, venue_id: str) -> TfcProviderConfig:
        provider_settings = self.venue_repository.get_provider_settings(venue_id)
        if provider_settings is None or not provider_settings.tfc_enabled:
            raise TfcNotEnabledException(venue_id)

        return TfcProviderConfig(
            venue_id=venue_id,
            tfc_enabled=True,
            hold_period_days=int(
                provider_settings.tfc_hold_period_days or settings.tfc_default_hold_period_days
            ),
            instructions=provider_settings.tfc_instructions or TFC_DEFAULT_INSTRUCTIONS,
            payee_name=provider_settings.tfc_payee_name or TFC_DEFAULT_PAYEE_NAME,
            payee_reference=provider_settings.tfc_payee_reference or TFC_DEFAULT_PAYEE_REFERENCE,
            sort_code=provider_settings.tfc_sort_code,
            account_number=provider_settings.tfc_account_number,
        )

    # Transitions

    def _load_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_with_context(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    def _lock_booking(self, booking_id: str) -> Booking:
        """Re-read a booking under a row lock; call inside ``transaction()``."""
        booking = self.booking_repository.get_by_id_for_update(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    def _require_pending_tfc(self, booking: Booking, attempted: PaymentStatus) -> None:
        if not booking.is_tfc:
            raise ValidationException(
                "Booking is not a TFC payment",
                code="NOT_TFC_BOOKING",
                details={"booking_id": booking.id, "payment_method": booking.payment_method},
            )
        if booking.payment_status != PaymentStatus.PENDING_PAYMENT.value:
            raise InvalidPaymentStateException(booking.id, booking.payment_status, attempted.value)

    @BaseService.measure_operation("tfc_create_booking")
    def create_tfc_booking(
        self,
        booking_id: str,
        *,
        hold_period_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Put a booking on hold for TFC payment.

        The deadline is ``now + hold_period_days``, falling back to the
        venue's hold period.
        """
        now = ensure_utc(now or utcnow())
        booking = self._load_booking(booking_id)
        if booking.is_cancelled:
            raise ConflictException("Booking is cancelled", code="BOOKING_CANCELLED")
        if booking.payment_status == PaymentStatus.PAID.value:
            raise InvalidPaymentStateException(
                booking.id, booking.payment_status, PaymentStatus.PENDING_PAYMENT.value
            )
        if booking.tfc_reference and booking.payment_status == PaymentStatus.PENDING_PAYMENT.value:
            raise ConflictException(
                "A TFC reference has already been issued for this booking",
                code="TFC_REFERENCE_EXISTS",
                details={"tfc_reference": booking.tfc_reference},
            )

        config = self.get_provider_config(booking.activity.venue_id)
        hold_days = config.hold_period_days if hold_period_days is None else hold_period_days
        if hold_days < 1:
            raise ValidationException("Hold period must be at least one day", code="INVALID_HOLD_PERIOD")

        with self.transaction():
            reference = self._unique_reference(now)
            deadline = now + timedelta(days=hold_days)
            booking.payment_method = PaymentMethod.TFC.value
            booking.payment_status = PaymentStatus.PENDING_PAYMENT.value
            booking.status = BookingStatus.PENDING.value
            booking.tfc_reference = reference
            booking.tfc_deadline = deadline
            booking.tfc_instructions = config.instructions
            booking.hold_period_days = hold_days
            booking.tfc_reminder_sent_at = None

        self.log_operation(
            "tfc_booking_created",
            booking_id=booking.id,
            tfc_reference=reference,
            deadline=deadline.isoformat(),
            amount_pence=booking.amount_pence,
        )
        return {
            "booking_id": booking.id,
            "reference": reference,
            "deadline": deadline,
            "hold_period_days": hold_days,
            "amount_pence": booking.amount_pence,
            "instructions": config.instructions,
            "payee": {
                "name": config.payee_name,
                "reference": config.payee_reference,
                "sort_code": config.sort_code,
                "account_number": config.account_number,
            },
        }

    def _confirm(self, booking: Booking, admin_id: str, now: datetime) -> None:
        self._require_pending_tfc(booking, PaymentStatus.PAID)
        booking.payment_status = PaymentStatus.PAID.value
        booking.status = BookingStatus.CONFIRMED.value
        booking.tfc_confirmed_by_id = admin_id
        booking.tfc_confirmed_at = now
        self.notification_service.notify_tfc_payment_confirmed(booking)

    @BaseService.measure_operation("tfc_confirm_payment")
    def confirm_payment(
        self, booking_id: str, admin_id: str, *, now: Optional[datetime] = None
    ) -> Booking:
        """Mark a pending TFC booking as paid."""
        now = ensure_utc(now or utcnow())
        self._load_booking(booking_id)
        with self.transaction():
            booking = self._lock_booking(booking_id)
            self._confirm(booking, admin_id, now)

        prometheus_metrics.inc_tfc_transition(PaymentStatus.PAID.value, "admin")
        self.log_operation(
            "tfc_payment_confirmed",
            booking_id=booking.id,
            admin_id=admin_id,
            tfc_reference=booking.tfc_reference,
        )
        return booking

    def _cancel(self, booking: Booking, actor_id: str, reason: str, now: datetime) -> None:
        self._require_pending_tfc(booking, PaymentStatus.CANCELLED)
        booking.payment_status = PaymentStatus.CANCELLED.value
        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = now
        booking.cancelled_by_id = actor_id
        booking.cancellation_reason = reason
        booking.cancellation_outcome = "not_paid"
        booking.cancellation_refund_pence = 0
        booking.cancellation_credit_pence = 0
        booking.cancellation_fee_pence = 0
        self.notification_service.notify_tfc_booking_cancelled(booking, reason)

    @BaseService.measure_operation("tfc_cancel_unpaid")
    def cancel_unpaid_booking(
        self,
        booking_id: str,
        *,
        admin_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Release a TFC booking whose payment has not arrived."""
        now = ensure_utc(now or utcnow())
        reason = reason or DEFAULT_UNPAID_REASON
        self._load_booking(booking_id)
        with self.transaction():
            booking = self._lock_booking(booking_id)
            self._cancel(booking, admin_id, reason, now)

        prometheus_metrics.inc_tfc_transition(PaymentStatus.CANCELLED.value, "admin")
        self.log_operation(
            "tfc_booking_cancelled", booking_id=booking.id, admin_id=admin_id, reason=reason
        )
        return booking

    @BaseService.measure_operation("tfc_bulk_confirm")
    def bulk_confirm(
        self, booking_ids: List[str], admin_id: str, *, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Confirm each booking independently; one failure does not stop the rest."""
        if len(booking_ids) > MAX_BULK_CONFIRM:
            raise ValidationException(
                f"At most {MAX_BULK_CONFIRM} bookings can be confirmed at once",
                code="BULK_LIMIT_EXCEEDED",
            )

        now = ensure_utc(now or utcnow())
        succeeded: List[str] = []
        failed: List[Dict[str, str]] = []
        for booking_id in dict.fromkeys(booking_ids):
            try:
                self._load_booking(booking_id)
                with self.transaction():
                    self._confirm(self._lock_booking(booking_id), admin_id, now)
            except DomainException as exc:
                self.logger.warning(
                    "Failed to confirm TFC payment for booking %s: %s", booking_id, exc.message
                )
                failed.append({"booking_id": booking_id, "code": exc.code, "error": exc.message})
                continue
            prometheus_metrics.inc_tfc_transition(PaymentStatus.PAID.value, "admin")
            succeeded.append(booking_id)

        self.log_operation(
            "tfc_bulk_confirm",
            admin_id=admin_id,
            succeeded=len(succeeded),
            failed=len(failed),
            total=len(booking_ids),
        )
        return {"success": len(succeeded), "failed": len(failed), "failures": failed}

    # Queues

    def _queue_entry(self, booking: Booking, now: datetime) -> Dict[str, Any]:
        deadline = ensure_utc(booking.tfc_deadline) if booking.tfc_deadline else None
        hours_left = hours_between(now, deadline) if deadline else 0.0
        activity = booking.activity
        return {
            "id": booking.id,
            "child": booking.child.full_name if booking.child else None,
            "parent": booking.parent.full_name if booking.parent else None,
            "parent_email": booking.parent.email if booking.parent else None,
            "activity": activity.title if activity else None,
            "venue": activity.venue.name if activity and activity.venue else None,
            "venue_id": activity.venue_id if activity else None,
            "amount_pence": booking.amount_pence,
            "reference": booking.tfc_reference,
            "deadline": deadline,
            "created_at": booking.created_at,
            "days_remaining": math.ceil(hours_left / 24),
            "hours_until_deadline": round(hours_left, 2),
            "reminder_sent": booking.tfc_reminder_sent_at is not None,
        }

    @BaseService.measure_operation("tfc_get_pending_queue")
    def get_pending_queue(
        self, *, venue_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Pending TFC bookings for the admin queue, soonest deadline first."""
        now = ensure_utc(now or utcnow())
        bookings = self.booking_repository.get_pending_tfc_bookings(venue_id=venue_id)
        return [self._queue_entry(booking, now) for booking in bookings]

    @BaseService.measure_operation("tfc_get_approaching_deadline")
    def get_bookings_approaching_deadline(
        self, *, hours: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        now = ensure_utc(now or utcnow())
        window = settings.tfc_reminder_hours if hours is None else hours
        if window < 0:
            raise ValidationException("hours must not be negative")
        bookings = self.booking_repository.get_tfc_bookings_due_between(
            start=now, end=now + timedelta(hours=window)
        )
        return [self._queue_entry(booking, now) for booking in bookings]

    @BaseService.measure_operation("tfc_get_expired")
    def get_expired_bookings(self, *, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        now = ensure_utc(now or utcnow())
        bookings = self.booking_repository.get_expired_tfc_bookings(as_of=now)
        return [self._queue_entry(booking, now) for booking in bookings]

    # Sweeps

    @BaseService.measure_operation("tfc_send_deadline_reminders")
    def send_deadline_reminders(self, *, now: Optional[datetime] = None) -> int:
        """Remind parents once when their deadline is within the reminder window."""
        now = ensure_utc(now or utcnow())
        with self.transaction():
            bookings = self.booking_repository.get_tfc_bookings_due_between(
                start=now,
                end=now + timedelta(hours=settings.tfc_reminder_hours),
                only_unreminded=True,
            )
            for booking in bookings:
                self.notification_service.notify_tfc_payment_reminder(booking)
                booking.tfc_reminder_sent_at = now

        if bookings:
            self.logger.info("Sent %d TFC payment reminders", len(bookings))
        return len(bookings)

    @BaseService.measure_operation("tfc_auto_cancel_expired")
    def auto_cancel_expired(self, *, now: Optional[datetime] = None) -> int:
        """Cancel every pending TFC booking whose deadline has passed. Returns count."""
        now = ensure_utc(now or utcnow())
        expired = self.booking_repository.get_expired_tfc_bookings(as_of=now)

        cancelled = 0
        for booking in expired:
            try:
                with self.transaction():
                    locked = self.booking_repository.get_by_id_for_update(booking.id)
                    # Confirmed or cancelled since the sweep read it
                    if (
                        locked is None
                        or locked.payment_status != PaymentStatus.PENDING_PAYMENT.value
                    ):
                        continue
                    self._cancel(locked, SYSTEM_ACTOR, TFC_AUTO_CANCEL_REASON, now)
            except DomainException as exc:
                self.logger.error(
                    "Failed to auto-cancel TFC booking %s: %s", booking.id, exc.message
                )
                continue
            prometheus_metrics.inc_tfc_transition(PaymentStatus.CANCELLED.value, "deadline")
            cancelled += 1

        if cancelled:
            self.logger.info("Auto-cancelled %d expired TFC bookings", cancelled)
        return cancelled


__all__ = ["TfcProviderConfig", "TfcService", "format_reference"]
