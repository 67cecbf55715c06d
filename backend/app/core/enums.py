# backend/app/core/enums.py
"""
Core enums for the BookOn settlement backend.

Values are persisted as plain strings, so every enum subclasses ``str``
and compares equal to its stored column value.
"""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    PARENT = "parent"
    PROVIDER = "provider"


class PaymentMethod(str, Enum):
    """How a booking was paid for."""

    CARD = "card"
    TFC = "tfc"
    VOUCHER = "voucher"
    MIXED = "mixed"


class PaymentStatus(str, Enum):
    """
    Payment status of a booking.

    TFC bookings follow ``PENDING_PAYMENT -> PAID | CANCELLED``.
    """

    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class RefundMethod(str, Enum):
    CASH = "cash"
    CREDIT = "credit"
    MIXED = "mixed"


class DefaultRefundMethod(str, Enum):
    """Provider-level preference applied to provider-initiated cancellations."""

    CASH = "cash"
    CREDIT = "credit"
    PARENT_CHOICE = "parent_choice"


class RefundStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class CreditStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class CreditSource(str, Enum):
    CANCELLATION = "cancellation"
    PROVIDER_CANCELLATION = "provider_cancellation"
    TRANSFER = "transfer"
    GOODWILL = "goodwill"
    MANUAL = "manual"


class FranchiseFeeType(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class VatMode(str, Enum):
    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"


class NotificationType(str, Enum):
    TFC_PAYMENT_REMINDER = "tfc_payment_reminder"
    TFC_BOOKING_CANCELLED = "tfc_booking_cancelled"
    TFC_PAYMENT_CONFIRMED = "tfc_payment_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    CREDIT_ISSUED = "credit_issued"
    CREDIT_EXPIRY_REMINDER = "credit_expiry_reminder"
