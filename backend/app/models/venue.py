# backend/app/models/venue.py
"""
Business accounts, venues and per-venue provider settings.

Franchise fees are configured on the business account and may be
overridden per venue. VAT mode and admin fee always come from the
business account.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import DefaultRefundMethod, FranchiseFeeType, VatMode
from ..database import Base


class BusinessAccount(Base):
    """Franchisee account that owns one or more venues."""

    __tablename__ = "business_accounts"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    franchise_fee_type = Column(String(20), nullable=False, default=FranchiseFeeType.PERCENT.value)
    franchise_fee_value = Column(
        Numeric(10, 2),
        nullable=False,
        default=0,
        comment="Percent (0-100) or fixed amount in pence",
    )
    vat_mode = Column(String(20), nullable=False, default=VatMode.INCLUSIVE.value)
    admin_fee_pence = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    venues = relationship("Venue", back_populates="business_account")

    __table_args__ = (
        CheckConstraint(
            "franchise_fee_type IN ('percent', 'fixed')", name="ck_business_fee_type"
        ),
        CheckConstraint("vat_mode IN ('inclusive', 'exclusive')", name="ck_business_vat_mode"),
    )

    def __repr__(self) -> str:
        return f"<BusinessAccount {self.name} fee={self.franchise_fee_type}:{self.franchise_fee_value}>"


class Venue(Base):
    __tablename__ = "venues"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    business_account_id = Column(
        String(26), ForeignKey("business_accounts.id"), nullable=True, index=True
    )
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)

    inherit_franchise_fee = Column(Boolean, nullable=False, default=True)
    franchise_fee_type = Column(String(20), nullable=True)
    franchise_fee_value = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    business_account = relationship("BusinessAccount", back_populates="venues")
    provider_settings = relationship(
        "ProviderSettings", back_populates="venue", uselist=False, cascade="all, delete-orphan"
    )
    activities = relationship("Activity", back_populates="venue")

    def __repr__(self) -> str:
        return f"<Venue {self.name}>"


class ProviderSettings(Base):
    """Cancellation and Tax-Free Childcare settings for a venue."""

    __tablename__ = "provider_settings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    venue_id = Column(
        String(26),
        ForeignKey("venues.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    admin_fee_pence = Column(Integer, nullable=True)
    default_refund_method = Column(
        String(20), nullable=False, default=DefaultRefundMethod.CREDIT.value
    )

    tfc_enabled = Column(Boolean, nullable=False, default=False)
    tfc_hold_period_days = Column(Integer, nullable=True)
    tfc_instructions = Column(Text, nullable=True)
    tfc_payee_name = Column(String(255), nullable=True)
    tfc_payee_reference = Column(String(100), nullable=True)
    tfc_sort_code = Column(String(10), nullable=True)
    tfc_account_number = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    venue = relationship("Venue", back_populates="provider_settings")

    def __repr__(self) -> str:
        return f"<ProviderSettings venue={self.venue_id} tfc={self.tfc_enabled}>"
