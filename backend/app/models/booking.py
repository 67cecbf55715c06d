# backend/app/models/booking.py
"""
Booking model for the BookOn platform.

A booking places one child on one activity. Payment data is kept on the
booking itself: the amount paid, how it was paid, and, for Tax-Free
Childcare bookings, the payment reference and the deadline by which the
parent must pay before the place is released.
"""

from enum import Enum
import logging

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import PaymentMethod, PaymentStatus
from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Awaiting payment (TFC)
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"  # Child didn't attend


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    parent_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    child_id = Column(String(26), ForeignKey("children.id"), nullable=False)
    activity_id = Column(String(26), ForeignKey("activities.id"), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)
    notes = Column(Text, nullable=True)

    # Payment
    amount_pence = Column(Integer, nullable=False)
    card_amount_pence = Column(
        Integer, nullable=True, comment="Card-paid share of a mixed payment"
    )
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CARD.value)
    payment_status = Column(String(30), nullable=False, default=PaymentStatus.PAID.value)
    stripe_payment_intent_id = Column(String(255), nullable=True)

    # Tax-Free Childcare
    tfc_reference = Column(String(32), nullable=True, unique=True)
    tfc_deadline = Column(DateTime(timezone=True), nullable=True)
    tfc_instructions = Column(Text, nullable=True)
    hold_period_days = Column(Integer, nullable=True)
    tfc_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    tfc_confirmed_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    tfc_confirmed_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation tracking
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_outcome = Column(
        String(30), nullable=True, comment="Refund policy branch applied on cancellation"
    )
    cancellation_refund_pence = Column(Integer, nullable=True)
    cancellation_credit_pence = Column(Integer, nullable=True)
    cancellation_fee_pence = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    parent = relationship("User", foreign_keys=[parent_id])
    child = relationship("Child")
    activity = relationship("Activity", back_populates="bookings")
    refund_transactions = relationship(
        "RefundTransaction", back_populates="booking", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("amount_pence >= 0", name="ck_booking_amount_non_negative"),
        CheckConstraint(
            "payment_method IN ('card', 'tfc', 'voucher', 'mixed')",
            name="ck_booking_payment_method",
        ),
        Index("ix_bookings_tfc_pending", "payment_method", "payment_status", "tfc_deadline"),
    )

    @property
    def is_tfc(self) -> bool:
        return self.payment_method == PaymentMethod.TFC.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} status={self.status} payment={self.payment_method}:"
            f"{self.payment_status} amount={self.amount_pence}>"
        )
