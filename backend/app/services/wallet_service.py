"""Parent wallet credits: issuance, FIFO-by-expiry spending, transfer and expiry."""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
import ulid

from app.core.config import settings
from app.core.constants import DEFAULT_CREDIT_HISTORY_LIMIT
from app.core.enums import CreditSource, CreditStatus
from app.core.exceptions import (
    InsufficientCreditsException,
    NotFoundException,
    ValidationException,
)
from app.models.user import User
from app.models.wallet import WalletCredit
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.repositories.factory import RepositoryFactory
from app.services.base import BaseService
from app.services.notification_service import NotificationService
from app.utils.time_helpers import add_months, ensure_utc, utcnow

logger = logging.getLogger(__name__)

GENERAL_CREDIT_KEY = "general"


def _is_spendable(credit: WalletCredit, now: datetime) -> bool:
    return (
        credit.status == CreditStatus.ACTIVE.value
        and ensure_utc(credit.expiry_date) > now
        and credit.remaining_pence > 0
    )


class WalletService(BaseService):
    """Manages parent wallet credits."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        super().__init__(db)
        self.credit_repository = RepositoryFactory.create_wallet_credit_repository(db)
        self.user_repository = RepositoryFactory.create_base_repository(db, User)
        self.notification_service = notification_service or NotificationService(db)

    # Reads

    @BaseService.measure_operation("wallet_get_balance")
    def get_balance(
        self,
        parent_id: str,
        *,
        provider_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Summarise a parent's wallet.

        ``available_pence`` counts only active, unexpired remaining value.
        ``expired_pence`` is the unspent value lost to expiry, including
        credits the sweep has not flipped yet.
        """
        now = ensure_utc(now or utcnow())
        credits = self.credit_repository.find_by(parent_id=parent_id)
        if provider_id:
            credits = [c for c in credits if c.provider_id == provider_id]

        total = used = available = expired = 0
        by_provider: Dict[str, int] = {}
        active: List[WalletCredit] = []
        for credit in credits:
            total += credit.amount_pence
            used += credit.used_amount_pence
            if _is_spendable(credit, now):
                available += credit.remaining_pence
                key = credit.provider_id or GENERAL_CREDIT_KEY
                by_provider[key] = by_provider.get(key, 0) + credit.remaining_pence
                active.append(credit)
            elif credit.status == CreditStatus.EXPIRED.value or ensure_utc(credit.expiry_date) <= now:
                expired += credit.remaining_pence

        active.sort(key=lambda c: (ensure_utc(c.expiry_date), c.id))
        return {
            "parent_id": parent_id,
            "total_pence": total,
            "available_pence": available,
            "used_pence": used,
            "expired_pence": expired,
            "by_provider": by_provider,
            "credits": active,
        }

    @BaseService.measure_operation("wallet_get_expiring_credits")
    def get_expiring_credits(
        self, *, days_ahead: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[WalletCredit]:
        """Active credits with value left that expire within ``days_ahead`` days."""
        now = ensure_utc(now or utcnow())
        days = settings.credit_expiry_reminder_days if days_ahead is None else days_ahead
        if days < 0:
            raise ValidationException("days_ahead must not be negative")
        return self.credit_repository.get_credits_expiring_between(
            start=now, end=now + timedelta(days=days)
        )

    @BaseService.measure_operation("wallet_get_credit_history")
    def get_credit_history(
        self, parent_id: str, *, limit: int = DEFAULT_CREDIT_HISTORY_LIMIT
    ) -> List[WalletCredit]:
        return self.credit_repository.get_history(parent_id=parent_id, limit=limit)

    @BaseService.measure_operation("wallet_get_stats")
    def get_wallet_stats(
        self, *, provider_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = ensure_utc(now or utcnow())
        credits = self.credit_repository.get_all_for_provider(provider_id=provider_id)

        stats: Dict[str, Any] = {
            "total_credits": len(credits),
            "active_credits": 0,
            "expired_credits": 0,
            "total_issued_pence": 0,
            "total_used_pence": 0,
            "total_available_pence": 0,
            "total_expired_pence": 0,
            "issued_by_source": {},
        }
        for credit in credits:
            stats["total_issued_pence"] += credit.amount_pence
            stats["total_used_pence"] += credit.used_amount_pence
            by_source = stats["issued_by_source"]
            by_source[credit.source] = by_source.get(credit.source, 0) + credit.amount_pence
            if _is_spendable(credit, now):
                stats["active_credits"] += 1
                stats["total_available_pence"] += credit.remaining_pence
            elif credit.status == CreditStatus.EXPIRED.value or ensure_utc(credit.expiry_date) <= now:
                stats["expired_credits"] += 1
                stats["total_expired_pence"] += credit.remaining_pence
        return stats

    # Writes

    def add_credit(
        self,
        *,
        parent_id: str,
        amount_pence: int,
        source: CreditSource,
        provider_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        description: Optional[str] = None,
        expiry_months: Optional[int] = None,
        transaction_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WalletCredit:
        """Create a credit inside the caller's transaction and notify the parent."""
        if amount_pence <= 0:
            raise ValidationException("Credit amount must be positive", code="INVALID_AMOUNT")
        months = settings.credit_expiry_months if expiry_months is None else expiry_months
        if months < 1:
            raise ValidationException("Credit expiry must be at least one month")

        now = ensure_utc(now or utcnow())
        credit = self.credit_repository.create(
            parent_id=parent_id,
            provider_id=provider_id,
            booking_id=booking_id,
            amount_pence=amount_pence,
            used_amount_pence=0,
            expiry_date=add_months(now, months),
            source=source.value,
            status=CreditStatus.ACTIVE.value,
            description=description,
            transaction_id=transaction_id,
        )
        self.notification_service.notify_credit_issued(credit)
        return credit

    @BaseService.measure_operation("wallet_issue_credit")
    def issue_credit(
        self,
        *,
        parent_id: str,
        amount_pence: int,
        source: CreditSource = CreditSource.MANUAL,
        provider_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        description: Optional[str] = None,
        expiry_months: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> WalletCredit:
        """Issue a new credit with a fresh expiry (12 months by default)."""
        if self.user_repository.get_by_id(parent_id) is None:
            raise NotFoundException(f"Parent {parent_id} not found", code="PARENT_NOT_FOUND")

        with self.transaction():
            credit = self.add_credit(
                parent_id=parent_id,
                amount_pence=amount_pence,
                source=source,
                provider_id=provider_id,
                booking_id=booking_id,
                description=description,
                expiry_months=expiry_months,
                now=now,
            )

        prometheus_metrics.add_credits_issued(source.value, amount_pence)
        self.log_operation(
            "credit_issued",
            parent_id=parent_id,
            credit_id=credit.id,
            amount_pence=amount_pence,
            source=source.value,
        )
        return credit

    def _consume(
        self,
        *,
        parent_id: str,
        amount_pence: int,
        transaction_id: str,
        now: datetime,
        provider_id: Optional[str] = None,
        booking_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if amount_pence <= 0:
            raise ValidationException("Amount must be positive", code="INVALID_AMOUNT")

        credits = self.credit_repository.get_spendable_credits_for_update(
            parent_id=parent_id, as_of=now, provider_id=provider_id
        )
        available = sum(credit.remaining_pence for credit in credits)
        if available < amount_pence:
            raise InsufficientCreditsException(
                requested_pence=amount_pence, available_pence=available
            )

        remaining = amount_pence
        usages: List[Dict[str, Any]] = []
        for credit in credits:
            if remaining <= 0:
                break
            take = min(credit.remaining_pence, remaining)
            credit.used_amount_pence += take
            if credit.remaining_pence == 0:
                credit.used_at = now
            self.credit_repository.record_usage(
                credit_id=credit.id,
                amount_pence=take,
                transaction_id=transaction_id,
                booking_id=booking_id,
            )
            usages.append(
                {
                    "credit_id": credit.id,
                    "amount_pence": take,
                    "remaining_pence": credit.remaining_pence,
                }
            )
            remaining -= take

        return usages

    @BaseService.measure_operation("wallet_use_credits")
    def use_credits(
        self,
        parent_id: str,
        amount_pence: int,
        *,
        booking_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Spend wallet credit, oldest expiry first.

        Raises ``InsufficientCreditsException`` without touching any credit
        when the spendable balance is below ``amount_pence``.
        """
        now = ensure_utc(now or utcnow())
        transaction_id = transaction_id or f"use-{ulid.ULID()}"

        with self.transaction():
            usages = self._consume(
                parent_id=parent_id,
                amount_pence=amount_pence,
                transaction_id=transaction_id,
                now=now,
                provider_id=provider_id,
                booking_id=booking_id,
            )

        prometheus_metrics.add_credits_used(amount_pence)
        self.log_operation(
            "credits_used",
            parent_id=parent_id,
            amount_pence=amount_pence,
            transaction_id=transaction_id,
            credits_touched=len(usages),
        )
        return {
            "transaction_id": transaction_id,
            "amount_pence": amount_pence,
            "usages": usages,
        }

    @BaseService.measure_operation("wallet_transfer_credits")
    def transfer_credits(
        self,
        parent_id: str,
        *,
        from_provider_id: str,
        to_provider_id: str,
        amount_pence: int,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Move credit scoped to one provider onto a new credit for another."""
        if from_provider_id == to_provider_id:
            raise ValidationException(
                "Source and destination providers must differ", code="SAME_PROVIDER"
            )

        now = ensure_utc(now or utcnow())
        transaction_id = f"transfer-{ulid.ULID()}"

        with self.transaction():
            usages = self._consume(
                parent_id=parent_id,
                amount_pence=amount_pence,
                transaction_id=transaction_id,
                now=now,
                provider_id=from_provider_id,
            )
            new_credit = self.add_credit(
                parent_id=parent_id,
                amount_pence=amount_pence,
                source=CreditSource.TRANSFER,
                provider_id=to_provider_id,
                description=f"Transfer from provider {from_provider_id}",
                transaction_id=transaction_id,
                now=now,
            )

        self.log_operation(
            "credits_transferred",
            parent_id=parent_id,
            from_provider_id=from_provider_id,
            to_provider_id=to_provider_id,
            amount_pence=amount_pence,
        )
        return {
            "transaction_id": transaction_id,
            "amount_pence": amount_pence,
            "usages": usages,
            "new_credit": new_credit,
        }

    # Sweeps

    @BaseService.measure_operation("wallet_expire_credits")
    def expire_credits(self, *, now: Optional[datetime] = None) -> int:
        """Flip active credits past their expiry date to ``expired``. Returns count."""
        now = ensure_utc(now or utcnow())
        with self.transaction():
            expired = self.credit_repository.get_expired_active_credits(as_of=now)
            for credit in expired:
                credit.status = CreditStatus.EXPIRED.value

        prometheus_metrics.inc_credits_expired(len(expired))
        if expired:
            self.logger.info("Expired %d wallet credits", len(expired))
        return len(expired)

    @BaseService.measure_operation("wallet_send_expiry_reminders")
    def send_expiry_reminders(
        self, *, now: Optional[datetime] = None, days_ahead: Optional[int] = None
    ) -> int:
        """Notify parents once about credits expiring soon. Returns count reminded."""
        now = ensure_utc(now or utcnow())
        days = settings.credit_expiry_reminder_days if days_ahead is None else days_ahead

        with self.transaction():
            credits = self.credit_repository.get_credits_expiring_between(
                start=now, end=now + timedelta(days=days), only_unreminded=True
            )
            for credit in credits:
                self.notification_service.notify_credit_expiring(credit)
                credit.expiry_reminder_sent_at = now

        if credits:
            self.logger.info("Sent %d credit expiry reminders", len(credits))
        return len(credits)


__all__ = ["WalletService", "GENERAL_CREDIT_KEY"]
