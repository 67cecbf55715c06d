# backend/app/repositories/factory.py
"""
Repository Factory for the BookOn settlement backend.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .notification_repository import NotificationRepository
    from .refund_repository import RefundRepository
    from .venue_repository import VenueRepository
    from .wallet_credit_repository import WalletCreditRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services never construct
    repositories directly and tests can swap implementations.
    """

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository:
        """
        Create a generic base repository for any model.

        Args:
            db: Database session
            model: SQLAlchemy model class

        Returns:
            BaseRepository instance
        """
        return BaseRepository(db, model)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking and TFC queue queries."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_wallet_credit_repository(db: Session) -> "WalletCreditRepository":
        """Create repository for wallet credit queries."""
        from .wallet_credit_repository import WalletCreditRepository

        return WalletCreditRepository(db)

    @staticmethod
    def create_refund_repository(db: Session) -> "RefundRepository":
        from .refund_repository import RefundRepository

        return RefundRepository(db)

    @staticmethod
    def create_venue_repository(db: Session) -> "VenueRepository":
        """Create repository for venues, business accounts and provider settings."""
        from .venue_repository import VenueRepository

        return VenueRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)
