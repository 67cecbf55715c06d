# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the BookOn settlement backend.

This package provides the repository layer for data access,
separating business logic from database queries.

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_wallet_credit_repository(db)
    credits = repository.get_spendable_credits_for_update(parent_id=parent_id, as_of=now)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .refund_repository import RefundRepository
from .venue_repository import VenueRepository
from .wallet_credit_repository import WalletCreditRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "NotificationRepository",
    "RefundRepository",
    "RepositoryFactory",
    "VenueRepository",
    "WalletCreditRepository",
]
