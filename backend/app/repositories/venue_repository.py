# backend/app/repositories/venue_repository.py
"""
Venue Repository for the BookOn settlement backend.

Lookups for business accounts, venues and their provider settings, which
together hold franchise fee, admin fee and TFC configuration.
"""

from __future__ import annotations

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import RepositoryException
from app.models.venue import BusinessAccount, ProviderSettings, Venue

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class VenueRepository(BaseRepository[Venue]):
    """Repository for venues, their business accounts and provider settings."""

    def __init__(self, db: Session):
        super().__init__(db, Venue)

    def get_with_business_account(self, venue_id: str) -> Optional[Venue]:
        try:
            query = (
                self.db.query(Venue)
                .options(joinedload(Venue.business_account), joinedload(Venue.provider_settings))
                .filter(Venue.id == venue_id)
            )
            return cast(Optional[Venue], query.first())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load venue %s: %s", venue_id, str(exc))
            raise RepositoryException("Failed to load venue") from exc

    def get_business_account(self, business_account_id: str) -> Optional[BusinessAccount]:
        try:
            return self.db.get(BusinessAccount, business_account_id)
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to load business account %s: %s", business_account_id, str(exc)
            )
            raise RepositoryException("Failed to load business account") from exc

    def list_active_business_accounts(self) -> List[BusinessAccount]:
        """Active business accounts, newest first."""
        try:
            query = (
                self.db.query(BusinessAccount)
                .filter(BusinessAccount.is_active.is_(True))
                .order_by(BusinessAccount.created_at.desc(), BusinessAccount.id.desc())
            )
            return cast(List[BusinessAccount], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list business accounts: %s", str(exc))
            raise RepositoryException("Failed to list business accounts") from exc

    def get_provider_settings(self, venue_id: str) -> Optional[ProviderSettings]:
        try:
            query = self.db.query(ProviderSettings).filter(ProviderSettings.venue_id == venue_id)
            return cast(Optional[ProviderSettings], query.first())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load provider settings for %s: %s", venue_id, str(exc))
            raise RepositoryException("Failed to load provider settings") from exc


__all__ = ["VenueRepository"]
