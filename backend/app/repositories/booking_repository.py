# backend/app/repositories/booking_repository.py
"""
Booking Repository for the BookOn settlement backend.

Holds the booking lookups needed by cancellations and by the
Tax-Free Childcare payment queue and deadline sweeps.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from app.core.enums import PaymentMethod, PaymentStatus
from app.core.exceptions import RepositoryException
from app.models.activity import Activity
from app.models.booking import Booking
from app.models.venue import Venue

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking queries."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def _with_context(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.activity)
            .joinedload(Activity.venue)
            .joinedload(Venue.provider_settings),
            joinedload(Booking.child),
            joinedload(Booking.parent),
        )

    def get_with_context(self, booking_id: str) -> Optional[Booking]:
        """Return a booking with its activity, venue, provider settings, child and parent."""
        try:
            query = self._with_context(self.db.query(Booking)).filter(Booking.id == booking_id)
            return cast(Optional[Booking], query.first())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load booking %s: %s", booking_id, str(exc))
            raise RepositoryException("Failed to load booking") from exc

    def tfc_reference_exists(self, reference: str) -> bool:
        try:
            return (
                self.db.query(Booking.id).filter(Booking.tfc_reference == reference).first()
                is not None
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to check TFC reference %s: %s", reference, str(exc))
            raise RepositoryException("Failed to check TFC reference") from exc

    def _pending_tfc_query(self) -> Query:
        return self._with_context(self.db.query(Booking)).filter(
            and_(
                Booking.payment_method == PaymentMethod.TFC.value,
                Booking.payment_status == PaymentStatus.PENDING_PAYMENT.value,
            )
        )

    def get_pending_tfc_bookings(self, *, venue_id: Optional[str] = None) -> List[Booking]:
        """Return TFC bookings awaiting payment, soonest deadline first."""
        try:
            query = self._pending_tfc_query()
            if venue_id:
                query = query.join(Booking.activity).filter(Activity.venue_id == venue_id)
            query = query.order_by(Booking.tfc_deadline.asc(), Booking.id.asc())
            return cast(List[Booking], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to get pending TFC bookings: %s", str(exc))
            raise RepositoryException("Failed to get pending TFC bookings") from exc

    def get_tfc_bookings_due_between(
        self,
        *,
        start: datetime,
        end: datetime,
        only_unreminded: bool = False,
    ) -> List[Booking]:
        """Return pending TFC bookings whose deadline falls inside ``[start, end]``."""
        try:
            query = self._pending_tfc_query().filter(
                and_(Booking.tfc_deadline >= start, Booking.tfc_deadline <= end)
            )
            if only_unreminded:
                query = query.filter(Booking.tfc_reminder_sent_at.is_(None))
            return cast(List[Booking], query.order_by(Booking.tfc_deadline.asc()).all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to get TFC bookings near deadline: %s", str(exc))
            raise RepositoryException("Failed to get TFC bookings near deadline") from exc

    def get_expired_tfc_bookings(self, *, as_of: datetime) -> List[Booking]:
        """Return pending TFC bookings whose deadline passed before ``as_of``."""
        try:
            query = self._pending_tfc_query().filter(Booking.tfc_deadline < as_of)
            return cast(List[Booking], query.order_by(Booking.tfc_deadline.desc()).all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to get expired TFC bookings: %s", str(exc))
            raise RepositoryException("Failed to get expired TFC bookings") from exc


__all__ = ["BookingRepository"]
