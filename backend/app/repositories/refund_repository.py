# backend/app/repositories/refund_repository.py
"""
Refund Repository for the BookOn settlement backend.

Data access for cash refund transactions: per-booking history, the
pending queue submitted to Stripe, and venue-scoped reporting.
"""

from __future__ import annotations

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.enums import RefundStatus
from app.core.exceptions import RepositoryException
from app.models.activity import Activity
from app.models.booking import Booking
from app.models.payment import RefundTransaction

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RefundRepository(BaseRepository[RefundTransaction]):
    """Repository for refund transactions."""

    def __init__(self, db: Session):
        super().__init__(db, RefundTransaction)

    def get_for_booking(self, booking_id: str) -> List[RefundTransaction]:
        try:
            query = (
                self.db.query(RefundTransaction)
                .filter(RefundTransaction.booking_id == booking_id)
                .order_by(RefundTransaction.created_at.asc(), RefundTransaction.id.asc())
            )
            return cast(List[RefundTransaction], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load refunds for booking %s: %s", booking_id, str(exc))
            raise RepositoryException("Failed to load refunds for booking") from exc

    def get_pending(self, *, limit: int = 100) -> List[RefundTransaction]:
        """Return pending refunds, oldest first."""
        try:
            query = (
                self.db.query(RefundTransaction)
                .filter(RefundTransaction.status == RefundStatus.PENDING.value)
                .order_by(RefundTransaction.created_at.asc(), RefundTransaction.id.asc())
                .limit(limit)
            )
            return cast(List[RefundTransaction], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load pending refunds: %s", str(exc))
            raise RepositoryException("Failed to load pending refunds") from exc

    def get_cancelled_bookings(self, *, venue_id: Optional[str] = None) -> List[Booking]:
        """Return cancelled bookings, optionally limited to one venue."""
        try:
            query = self.db.query(Booking).filter(Booking.cancelled_at.isnot(None))
            if venue_id:
                query = query.join(Booking.activity).filter(Activity.venue_id == venue_id)
            return cast(List[Booking], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load cancelled bookings: %s", str(exc))
            raise RepositoryException("Failed to load cancelled bookings") from exc

    def get_for_bookings(self, booking_ids: List[str]) -> List[RefundTransaction]:
        if not booking_ids:
            return []
        try:
            query = self.db.query(RefundTransaction).filter(
                RefundTransaction.booking_id.in_(booking_ids)
            )
            return cast(List[RefundTransaction], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load refunds for bookings: %s", str(exc))
            raise RepositoryException("Failed to load refunds for bookings") from exc


__all__ = ["RefundRepository"]
