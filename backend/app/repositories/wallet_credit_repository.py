# backend/app/repositories/wallet_credit_repository.py
"""
Wallet Credit Repository for the BookOn settlement backend.

Encapsulates credit queries (spendable, expiring, expired) that back the
FIFO-by-expiry consumption and the expiry sweep.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.enums import CreditStatus
from app.core.exceptions import RepositoryException
from app.models.wallet import WalletCredit, WalletCreditUsage

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WalletCreditRepository(BaseRepository[WalletCredit]):
    """Repository for wallet credit queries."""

    def __init__(self, db: Session):
        super().__init__(db, WalletCredit)

    def get_spendable_credits_for_update(
        self,
        *,
        parent_id: str,
        as_of: datetime,
        provider_id: Optional[str] = None,
    ) -> List[WalletCredit]:
        """Lock and return unexpired credits with remaining value, FIFO by expiry."""
        try:
            query = self.db.query(WalletCredit).filter(
                and_(
                    WalletCredit.parent_id == parent_id,
                    WalletCredit.status == CreditStatus.ACTIVE.value,
                    WalletCredit.expiry_date > as_of,
                    WalletCredit.used_amount_pence < WalletCredit.amount_pence,
                )
            )
            if provider_id is not None:
                query = query.filter(WalletCredit.provider_id == provider_id)
            query = query.order_by(
                WalletCredit.expiry_date.asc(),
                WalletCredit.created_at.asc(),
                WalletCredit.id.asc(),
            ).with_for_update()
            return cast(List[WalletCredit], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to get spendable credits: %s", str(exc))
            raise RepositoryException("Failed to get spendable credits") from exc

    def get_credits_expiring_between(
        self,
        *,
        start: datetime,
        end: datetime,
        only_unreminded: bool = False,
    ) -> List[WalletCredit]:
        """Return active credits with remaining value expiring inside ``[start, end]``."""
        try:
            query = self.db.query(WalletCredit).filter(
                and_(
                    WalletCredit.status == CreditStatus.ACTIVE.value,
                    WalletCredit.expiry_date >= start,
                    WalletCredit.expiry_date <= end,
                    WalletCredit.used_amount_pence < WalletCredit.amount_pence,
                )
            )
            if only_unreminded:
                query = query.filter(WalletCredit.expiry_reminder_sent_at.is_(None))
            return cast(List[WalletCredit], query.order_by(WalletCredit.expiry_date.asc()).all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to get expiring credits: %s", str(exc))
            raise RepositoryException("Failed to get expiring credits") from exc

    def get_expired_active_credits(self, *, as_of: datetime) -> List[WalletCredit]:
        """Return credits still marked active whose expiry date has passed."""
        try:
            credits = (
                self.db.query(WalletCredit)
                .filter(
                    and_(
                        WalletCredit.status == CreditStatus.ACTIVE.value,
                        WalletCredit.expiry_date <= as_of,
                    )
                )
                .all()
            )
            return cast(List[WalletCredit], credits)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load expired credits: %s", str(exc))
            raise RepositoryException("Failed to load expired credits") from exc

    def get_history(self, *, parent_id: str, limit: int) -> List[WalletCredit]:
        try:
            query = (
                self.db.query(WalletCredit)
                .filter(WalletCredit.parent_id == parent_id)
                .order_by(WalletCredit.created_at.desc(), WalletCredit.id.desc())
                .limit(limit)
            )
            return cast(List[WalletCredit], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load credit history: %s", str(exc))
            raise RepositoryException("Failed to load credit history") from exc

    def get_all_for_provider(self, *, provider_id: Optional[str] = None) -> List[WalletCredit]:
        try:
            query = self.db.query(WalletCredit)
            if provider_id:
                query = query.filter(WalletCredit.provider_id == provider_id)
            return cast(List[WalletCredit], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load credits for stats: %s", str(exc))
            raise RepositoryException("Failed to load credits") from exc

    def get_for_source_booking(self, *, booking_id: str) -> List[WalletCredit]:
        try:
            query = self.db.query(WalletCredit).filter(WalletCredit.booking_id == booking_id)
            return cast(List[WalletCredit], query.order_by(WalletCredit.created_at.asc()).all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load credits for booking %s: %s", booking_id, str(exc))
            raise RepositoryException("Failed to load credits for booking") from exc

    def record_usage(
        self,
        *,
        credit_id: str,
        amount_pence: int,
        transaction_id: str,
        booking_id: Optional[str] = None,
    ) -> WalletCreditUsage:
        try:
            usage = WalletCreditUsage(
                credit_id=credit_id,
                amount_pence=amount_pence,
                transaction_id=transaction_id,
                booking_id=booking_id,
            )
            self.db.add(usage)
            self.db.flush()
            return usage
        except SQLAlchemyError as exc:
            self.logger.error("Failed to record credit usage for %s: %s", credit_id, str(exc))
            raise RepositoryException("Failed to record credit usage") from exc


__all__ = ["WalletCreditRepository"]
