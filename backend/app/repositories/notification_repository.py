"""Repository for in-app notifications."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.notification import Notification
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Data access for notification inbox entries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, Notification)

    def create_notification(
        self,
        *,
        user_id: str,
        type: str,
        title: str,
        body: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        return self.create(user_id=user_id, type=type, title=title, body=body, data=data)

    def get_for_user(
        self, user_id: str, *, type: Optional[str] = None, limit: int = 50
    ) -> List[Notification]:
        try:
            query = self.db.query(Notification).filter(Notification.user_id == user_id)
            if type:
                query = query.filter(Notification.type == type)
            query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
            return cast(List[Notification], query.limit(limit).all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load notifications for %s: %s", user_id, str(exc))
            raise RepositoryException("Failed to load notifications") from exc
