"""
Wallet credit models.

A credit is spent in place: ``used_amount_pence`` grows as bookings draw on
it, and every draw is recorded as a ``WalletCreditUsage`` row so spending
can be traced back to the booking or transfer that consumed it.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from app.core.enums import CreditStatus
from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User


class WalletCredit(Base):
    """Credit held by a parent, optionally scoped to one provider (venue)."""

    __tablename__ = "wallet_credits"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    parent_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("venues.id"), nullable=True, comment="NULL means usable anywhere"
    )
    booking_id: Mapped[Optional[str]] = mapped_column(String(26), ForeignKey("bookings.id"), nullable=True)
    amount_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    used_amount_pence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CreditStatus.ACTIVE.value)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    expiry_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    parent: Mapped["User"] = relationship("User", back_populates="wallet_credits")

    __table_args__ = (
        CheckConstraint("amount_pence >= 0", name="ck_wallet_credit_amount"),
        CheckConstraint(
            "used_amount_pence >= 0 AND used_amount_pence <= amount_pence",
            name="ck_wallet_credit_used_within_amount",
        ),
        Index("ix_wallet_credits_parent_status_expiry", "parent_id", "status", "expiry_date"),
    )

    @property
    def remaining_pence(self) -> int:
        return int(self.amount_pence or 0) - int(self.used_amount_pence or 0)

    def __repr__(self) -> str:
        return (
            f"<WalletCredit(parent_id={self.parent_id}, amount={self.amount_pence}, "
            f"used={self.used_amount_pence}, status={self.status})>"
        )


class WalletCreditUsage(Base):
    """One draw against a wallet credit."""

    __tablename__ = "wallet_credit_usages"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    credit_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("wallet_credits.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    booking_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    credit: Mapped["WalletCredit"] = relationship("WalletCredit")

    def __repr__(self) -> str:
        return f"<WalletCreditUsage(credit_id={self.credit_id}, amount={self.amount_pence})>"
