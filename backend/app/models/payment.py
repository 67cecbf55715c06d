"""
Refund models.

A refund transaction records the cash share of a cancellation. It starts
``pending`` and is submitted to Stripe by the refund processing job when
the booking carries a payment intent.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from app.core.enums import PaymentMethod, RefundStatus
from app.database import Base

if TYPE_CHECKING:
    from app.models.booking import Booking


class RefundTransaction(Base):
    """Cash refund owed to a parent after a cancellation."""

    __tablename__ = "refund_transactions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    amount_pence: Mapped[int] = mapped_column(Integer, nullable=False, comment="Net cash refund")
    fee_pence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethod.CARD.value
    )
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RefundStatus.PENDING.value, index=True
    )
    admin_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)
    stripe_refund_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audit_trail: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="refund_transactions")

    def __repr__(self) -> str:
        return f"<RefundTransaction(booking_id={self.booking_id}, amount={self.amount_pence}, status={self.status})>"
