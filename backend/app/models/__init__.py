"""
Database models for the BookOn settlement backend.

The models are organized by functionality:
- Users and children
- Business accounts, venues and provider settings
- Activities and bookings
- Refunds and wallet credits
- In-app notifications
"""

from .activity import Activity
from .booking import Booking, BookingStatus
from .notification import Notification
from .payment import RefundTransaction
from .user import Child, User
from .venue import BusinessAccount, ProviderSettings, Venue
from .wallet import WalletCredit, WalletCreditUsage

__all__ = [
    "Activity",
    "Booking",
    "BookingStatus",
    "BusinessAccount",
    "Child",
    "Notification",
    "ProviderSettings",
    "RefundTransaction",
    "User",
    "Venue",
    "WalletCredit",
    "WalletCreditUsage",
]
