# backend/app/models/activity.py
"""Activity model: a single session or a course of evenly spaced sessions."""

from datetime import datetime, timedelta
from typing import List

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from ..utils.time_helpers import ensure_utc


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    venue_id = Column(String(26), ForeignKey("venues.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    start_at = Column(DateTime(timezone=True), nullable=False, comment="First session start")
    session_count = Column(Integer, nullable=False, default=1)
    session_interval_days = Column(Integer, nullable=False, default=7)
    price_pence = Column(Integer, nullable=False, default=0)
    capacity = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    venue = relationship("Venue", back_populates="activities")
    bookings = relationship("Booking", back_populates="activity")

    __table_args__ = (
        CheckConstraint("session_count >= 1", name="ck_activity_session_count"),
        CheckConstraint("session_interval_days >= 0", name="ck_activity_session_interval"),
    )

    def session_starts(self) -> List[datetime]:
        """Return UTC start times of every session in the course."""
        first = ensure_utc(self.start_at)
        count = int(self.session_count or 1)
        interval = timedelta(days=int(self.session_interval_days or 0))
        return [first + interval * index for index in range(count)]

    def __repr__(self) -> str:
        return f"<Activity {self.title} sessions={self.session_count}>"
