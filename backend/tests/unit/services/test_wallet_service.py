from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session

from app.core.enums import CreditSource
from app.core.exceptions import (
    InsufficientCreditsException,
    NotFoundException,
    ValidationException,
)
from app.models.notification import Notification
from app.models.wallet import WalletCredit, WalletCreditUsage
from app.services.wallet_service import GENERAL_CREDIT_KEY, WalletService
from app.utils.time_helpers import ensure_utc
from tests.factories import create_credit, create_parent, create_venue, days


@pytest.fixture
def service(db: Session) -> WalletService:
    return WalletService(db)


@pytest.fixture
def parent(db: Session):
    parent = create_parent(db)
    db.commit()
    return parent


def _reload(db: Session, credit: WalletCredit) -> WalletCredit:
    db.expire(credit)
    return db.get(WalletCredit, credit.id)


class TestIssueCredit:
    def test_issue_credit_expires_after_twelve_months(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        credit = service.issue_credit(
            parent_id=parent.id, amount_pence=1500, source=CreditSource.GOODWILL, now=now
        )

        assert credit.amount_pence == 1500
        assert credit.remaining_pence == 1500
        assert credit.status == "active"
        assert credit.source == "goodwill"
        assert ensure_utc(credit.expiry_date) == datetime(2026, 1, 14, 10, 0, tzinfo=timezone.utc)
        notification = db.query(Notification).filter_by(user_id=parent.id).one()
        assert notification.type == "credit_issued"

    def test_custom_expiry_clamps_to_month_end(
        self, service: WalletService, parent
    ) -> None:
        issued_at = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)

        credit = service.issue_credit(
            parent_id=parent.id, amount_pence=100, expiry_months=1, now=issued_at
        )

        assert ensure_utc(credit.expiry_date) == datetime(2025, 2, 28, 12, 0, tzinfo=timezone.utc)

    def test_unknown_parent(self, service: WalletService, now: datetime) -> None:
        with pytest.raises(NotFoundException):
            service.issue_credit(parent_id="missing", amount_pence=100, now=now)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, service: WalletService, parent, amount: int) -> None:
        with pytest.raises(ValidationException):
            service.issue_credit(parent_id=parent.id, amount_pence=amount)


class TestUseCredits:
    def test_spends_earliest_expiry_first(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        later = create_credit(db, parent=parent, amount_pence=500, expiry_date=now + days(60))
        sooner = create_credit(db, parent=parent, amount_pence=300, expiry_date=now + days(30))
        untouched = create_credit(db, parent=parent, amount_pence=1000, expiry_date=now + days(180))
        db.commit()

        result = service.use_credits(parent.id, 600, booking_id="booking_1", now=now)

        assert [u["credit_id"] for u in result["usages"]] == [sooner.id, later.id]
        assert [u["amount_pence"] for u in result["usages"]] == [300, 300]
        assert _reload(db, sooner).remaining_pence == 0
        assert _reload(db, sooner).used_at is not None
        assert _reload(db, later).remaining_pence == 200
        assert _reload(db, untouched).remaining_pence == 1000
        assert db.query(WalletCreditUsage).filter_by(booking_id="booking_1").count() == 2
        assert result["transaction_id"].startswith("use-")

    def test_insufficient_balance_leaves_credits_untouched(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        first = create_credit(db, parent=parent, amount_pence=500, expiry_date=now + days(30))
        second = create_credit(db, parent=parent, amount_pence=300, expiry_date=now + days(60))
        db.commit()

        with pytest.raises(InsufficientCreditsException) as exc_info:
            service.use_credits(parent.id, 1000, now=now)

        assert exc_info.value.details == {"requested_pence": 1000, "available_pence": 800}
        assert _reload(db, first).used_amount_pence == 0
        assert _reload(db, second).used_amount_pence == 0
        assert db.query(WalletCreditUsage).count() == 0

    def test_expired_credit_is_not_spendable_before_the_sweep(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        create_credit(db, parent=parent, amount_pence=500, expiry_date=now - days(1))
        db.commit()

        with pytest.raises(InsufficientCreditsException):
            service.use_credits(parent.id, 100, now=now)

    def test_provider_filter_only_spends_that_providers_credit(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        venue = create_venue(db)
        scoped = create_credit(
            db, parent=parent, amount_pence=400, expiry_date=now + days(90), provider_id=venue.id
        )
        create_credit(db, parent=parent, amount_pence=400, expiry_date=now + days(10))
        db.commit()

        result = service.use_credits(parent.id, 400, provider_id=venue.id, now=now)

        assert [u["credit_id"] for u in result["usages"]] == [scoped.id]
        with pytest.raises(InsufficientCreditsException):
            service.use_credits(parent.id, 1, provider_id=venue.id, now=now)

    def test_partially_used_credit_contributes_only_its_remainder(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        create_credit(
            db, parent=parent, amount_pence=500, used_amount_pence=450, expiry_date=now + days(5)
        )
        db.commit()

        with pytest.raises(InsufficientCreditsException) as exc_info:
            service.use_credits(parent.id, 100, now=now)

        assert exc_info.value.details["available_pence"] == 50


class TestTransfer:
    def test_transfer_moves_value_to_new_provider_credit(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        source_venue = create_venue(db)
        target_venue = create_venue(db)
        original = create_credit(
            db,
            parent=parent,
            amount_pence=1000,
            expiry_date=now + days(20),
            provider_id=source_venue.id,
        )
        db.commit()

        result = service.transfer_credits(
            parent.id,
            from_provider_id=source_venue.id,
            to_provider_id=target_venue.id,
            amount_pence=700,
            now=now,
        )

        new_credit = result["new_credit"]
        assert new_credit.provider_id == target_venue.id
        assert new_credit.amount_pence == 700
        assert new_credit.source == "transfer"
        assert new_credit.transaction_id == result["transaction_id"]
        assert ensure_utc(new_credit.expiry_date) == datetime(2026, 1, 14, 10, 0, tzinfo=timezone.utc)
        assert _reload(db, original).remaining_pence == 300

    def test_transfer_to_same_provider_is_rejected(
        self, service: WalletService, parent
    ) -> None:
        with pytest.raises(ValidationException) as exc_info:
            service.transfer_credits(
                parent.id, from_provider_id="v1", to_provider_id="v1", amount_pence=100
            )

        assert exc_info.value.code == "SAME_PROVIDER"

    def test_transfer_beyond_provider_balance_creates_nothing(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        source_venue = create_venue(db)
        target_venue = create_venue(db)
        create_credit(
            db, parent=parent, amount_pence=200, expiry_date=now + days(20), provider_id=source_venue.id
        )
        db.commit()

        with pytest.raises(InsufficientCreditsException):
            service.transfer_credits(
                parent.id,
                from_provider_id=source_venue.id,
                to_provider_id=target_venue.id,
                amount_pence=500,
                now=now,
            )

        assert db.query(WalletCredit).filter_by(provider_id=target_venue.id).count() == 0


class TestBalanceAndStats:
    def test_balance_summarises_available_used_and_expired(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        venue = create_venue(db)
        create_credit(db, parent=parent, amount_pence=1000, used_amount_pence=250, expiry_date=now + days(30))
        create_credit(
            db, parent=parent, amount_pence=500, expiry_date=now + days(60), provider_id=venue.id
        )
        create_credit(db, parent=parent, amount_pence=300, expiry_date=now - days(1))
        create_credit(
            db, parent=parent, amount_pence=200, expiry_date=now - days(40), status="expired"
        )
        db.commit()

        balance = service.get_balance(parent.id, now=now)

        assert balance["total_pence"] == 2000
        assert balance["used_pence"] == 250
        assert balance["available_pence"] == 1250
        assert balance["expired_pence"] == 500
        assert balance["by_provider"] == {GENERAL_CREDIT_KEY: 750, venue.id: 500}
        assert len(balance["credits"]) == 2

    def test_balance_for_parent_without_credits(self, service: WalletService, parent) -> None:
        balance = service.get_balance(parent.id)

        assert balance["available_pence"] == 0
        assert balance["credits"] == []

    def test_wallet_stats(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        create_credit(db, parent=parent, amount_pence=1000, used_amount_pence=400, expiry_date=now + days(30))
        create_credit(
            db, parent=parent, amount_pence=600, expiry_date=now - days(3), source="cancellation"
        )
        db.commit()

        stats = service.get_wallet_stats(now=now)

        assert stats["total_credits"] == 2
        assert stats["active_credits"] == 1
        assert stats["expired_credits"] == 1
        assert stats["total_issued_pence"] == 1600
        assert stats["total_used_pence"] == 400
        assert stats["total_available_pence"] == 600
        assert stats["total_expired_pence"] == 600
        assert stats["issued_by_source"] == {"manual": 1000, "cancellation": 600}


class TestSweeps:
    def test_expire_credits_flips_only_past_expiry(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        stale = create_credit(db, parent=parent, amount_pence=100, expiry_date=now - days(1))
        fresh = create_credit(db, parent=parent, amount_pence=100, expiry_date=now + days(1))
        db.commit()

        assert service.expire_credits(now=now) == 1
        assert service.expire_credits(now=now) == 0
        assert _reload(db, stale).status == "expired"
        assert _reload(db, fresh).status == "active"

    def test_credit_expiring_at_sweep_time_is_expired(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        boundary = create_credit(db, parent=parent, amount_pence=300, expiry_date=now)
        db.commit()

        assert service.get_balance(parent.id, now=now)["expired_pence"] == 300
        with pytest.raises(InsufficientCreditsException):
            service.use_credits(parent.id, 1, now=now)

        assert service.expire_credits(now=now) == 1
        assert _reload(db, boundary).status == "expired"

    def test_expiry_reminders_are_sent_once(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        soon = create_credit(db, parent=parent, amount_pence=100, expiry_date=now + days(10))
        create_credit(db, parent=parent, amount_pence=100, expiry_date=now + days(90))
        create_credit(
            db, parent=parent, amount_pence=100, used_amount_pence=100, expiry_date=now + days(5)
        )
        db.commit()

        assert service.send_expiry_reminders(now=now, days_ahead=30) == 1
        assert service.send_expiry_reminders(now=now, days_ahead=30) == 0
        assert _reload(db, soon).expiry_reminder_sent_at is not None
        reminders = (
            db.query(Notification)
            .filter_by(user_id=parent.id, type="credit_expiry_reminder")
            .all()
        )
        assert len(reminders) == 1
        assert reminders[0].data["credit_id"] == soon.id

    def test_get_expiring_credits_window(
        self, db: Session, service: WalletService, parent, now: datetime
    ) -> None:
        inside = create_credit(db, parent=parent, amount_pence=100, expiry_date=now + days(7))
        create_credit(db, parent=parent, amount_pence=100, expiry_date=now + days(45))
        db.commit()

        expiring = service.get_expiring_credits(days_ahead=30, now=now)

        assert [credit.id for credit in expiring] == [inside.id]

    def test_negative_window_is_rejected(self, service: WalletService) -> None:
        with pytest.raises(ValidationException):
            service.get_expiring_credits(days_ahead=-1)


def test_credit_history_is_limited(
    db: Session, service: WalletService, parent, now: datetime
) -> None:
    for _ in range(3):
        create_credit(db, parent=parent, amount_pence=100, expiry_date=now + days(30))
    db.commit()

    assert len(service.get_credit_history(parent.id, limit=2)) == 2
