# backend/app/services/notification_service.py
"""
Notification Service for the BookOn settlement backend.

Writes in-app notifications for settlement events. Rows are flushed into
the caller's transaction so a reminder is only recorded if the state
change that triggered it commits. Email and SMS delivery read these rows
from elsewhere.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.enums import NotificationType
from ..models.booking import Booking
from ..models.notification import Notification
from ..models.wallet import WalletCredit
from ..repositories.factory import RepositoryFactory
from ..utils.money import pence_to_pounds
from ..utils.time_helpers import ensure_utc
from .base import BaseService

logger = logging.getLogger(__name__)


def _activity_title(booking: Booking) -> str:
    activity = getattr(booking, "activity", None)
    return getattr(activity, "title", None) or "your booking"


class NotificationService(BaseService):
    """Creates parent-facing notifications for refunds, credits and TFC payments."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.notification_repository = RepositoryFactory.create_notification_repository(db)

    def notify(
        self,
        *,
        user_id: str,
        type: NotificationType,
        title: str,
        body: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Flush a notification into the caller's transaction."""
        notification = self.notification_repository.create_notification(
            user_id=user_id,
            type=type.value,
            title=title,
            body=body,
            data=data,
        )

        self.logger.info(
            "Notification queued",
            extra={"user_id": user_id, "notification_type": type.value},
        )
        return notification

    def notify_tfc_payment_reminder(self, booking: Booking) -> Notification:
        deadline = ensure_utc(booking.tfc_deadline)
        return self.notify(
            user_id=booking.parent_id,
            type=NotificationType.TFC_PAYMENT_REMINDER,
            title="Tax-Free Childcare payment due",
            body=(
                f"Please pay {pence_to_pounds(booking.amount_pence)} for {_activity_title(booking)} "
                f"using reference {booking.tfc_reference} before {deadline:%d %b %Y %H:%M} UTC."
            ),
            data={
                "booking_id": booking.id,
                "tfc_reference": booking.tfc_reference,
                "deadline": deadline.isoformat(),
                "amount_pence": booking.amount_pence,
            },
        )

    def notify_tfc_booking_cancelled(self, booking: Booking, reason: str) -> Notification:
        return self.notify(
            user_id=booking.parent_id,
            type=NotificationType.TFC_BOOKING_CANCELLED,
            title="Booking cancelled",
            body=f"Your booking for {_activity_title(booking)} was cancelled: {reason}.",
            data={
                "booking_id": booking.id,
                "tfc_reference": booking.tfc_reference,
                "reason": reason,
            },
        )

    def notify_tfc_payment_confirmed(self, booking: Booking) -> Notification:
        return self.notify(
            user_id=booking.parent_id,
            type=NotificationType.TFC_PAYMENT_CONFIRMED,
            title="Payment received",
            body=f"Your Tax-Free Childcare payment for {_activity_title(booking)} has been received.",
            data={"booking_id": booking.id, "tfc_reference": booking.tfc_reference},
        )

    def notify_booking_cancelled(
        self,
        booking: Booking,
        *,
        refund_pence: int,
        credit_pence: int,
        admin_fee_pence: int,
    ) -> Notification:
        parts = []
        if refund_pence:
            parts.append(f"{pence_to_pounds(refund_pence)} will be refunded to your card")
        if credit_pence:
            parts.append(f"{pence_to_pounds(credit_pence)} has been added to your wallet")
        summary = " and ".join(parts) if parts else "No refund is due"
        return self.notify(
            user_id=booking.parent_id,
            type=NotificationType.BOOKING_CANCELLED,
            title="Booking cancelled",
            body=f"Your booking for {_activity_title(booking)} was cancelled. {summary}.",
            data={
                "booking_id": booking.id,
                "refund_pence": refund_pence,
                "credit_pence": credit_pence,
                "admin_fee_pence": admin_fee_pence,
            },
        )

    def notify_credit_issued(self, credit: WalletCredit) -> Notification:
        expiry = ensure_utc(credit.expiry_date)
        return self.notify(
            user_id=credit.parent_id,
            type=NotificationType.CREDIT_ISSUED,
            title="Credit added to your wallet",
            body=f"{pence_to_pounds(credit.amount_pence)} credit, valid until {expiry:%d %b %Y}.",
            data={
                "credit_id": credit.id,
                "amount_pence": credit.amount_pence,
                "expiry_date": expiry.isoformat(),
            },
        )

    def notify_credit_expiring(self, credit: WalletCredit) -> Notification:
        expiry = ensure_utc(credit.expiry_date)
        return self.notify(
            user_id=credit.parent_id,
            type=NotificationType.CREDIT_EXPIRY_REMINDER,
            title="Wallet credit expiring soon",
            body=(
                f"{pence_to_pounds(credit.remaining_pence)} of wallet credit expires on "
                f"{expiry:%d %b %Y}."
            ),
            data={
                "credit_id": credit.id,
                "remaining_pence": credit.remaining_pence,
                "expiry_date": expiry.isoformat(),
            },
        )
