"""
In-app notification model.

Settlement jobs write a notification whenever a parent needs to act or is
told about money moving (TFC reminders, cancellations, credits).
Delivery over email or SMS is handled elsewhere.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    data = Column(JSON, nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("ix_notifications_user_type", "user_id", "type"),)

    def __repr__(self) -> str:
        return f"<Notification {self.type} user={self.user_id}>"
