from __future__ import annotations

from datetime import datetime, timezone
import re

import pytest
from sqlalchemy.orm import Session

from app.core.constants import TFC_AUTO_CANCEL_REASON
from app.core.exceptions import (
    ConflictException,
    InvalidPaymentStateException,
    ServiceException,
    TfcNotEnabledException,
    ValidationException,
)
from app.models.booking import Booking
from app.models.notification import Notification
from app.services.tfc_service import TfcService, format_reference
from tests.factories import (
    commit_booking_change_elsewhere,
    create_activity,
    create_booking,
    create_parent,
    create_pending_tfc_booking,
    create_venue,
    days,
    hours,
)

REFERENCE_PATTERN = re.compile(r"^TFC-\d{8}-\d{6}$")


@pytest.fixture
def service(db: Session) -> TfcService:
    return TfcService(db)


@pytest.fixture
def parent(db: Session):
    return create_parent(db)


@pytest.fixture
def activity(db: Session, now: datetime):
    venue = create_venue(db, tfc_enabled=True, tfc_hold_period_days=5)
    return create_activity(db, venue, start_at=now + days(14))


def _pending(db: Session, parent, activity, deadline: datetime, **kwargs) -> Booking:
    booking = create_pending_tfc_booking(
        db, parent=parent, activity=activity, deadline=deadline, **kwargs
    )
    db.commit()
    return booking


def _notifications(db: Session, user_id: str, type: str) -> list[Notification]:
    return db.query(Notification).filter_by(user_id=user_id, type=type).all()


class TestReferences:
    def test_format_reference_pads_suffix(self) -> None:
        created = datetime(2025, 1, 14, 23, 30, tzinfo=timezone.utc)

        assert format_reference(created, 42) == "TFC-20250114-000042"

    def test_generated_reference_matches_format(self, service: TfcService, now: datetime) -> None:
        reference = service.generate_reference(now)

        assert REFERENCE_PATTERN.match(reference)
        assert reference.startswith("TFC-20250114-")
        assert 100000 <= int(reference[-6:]) <= 999999

    def test_collision_is_retried(
        self, db: Session, service: TfcService, parent, activity, now: datetime, monkeypatch
    ) -> None:
        _pending(db, parent, activity, now + days(2), reference="TFC-20250114-111111")
        booking = create_booking(
            db, parent=parent, activity=activity, payment_method="tfc", payment_status="pending_payment"
        )
        db.commit()
        candidates = iter(["TFC-20250114-111111", "TFC-20250114-222222"])
        monkeypatch.setattr(service, "generate_reference", lambda now=None: next(candidates))

        result = service.create_tfc_booking(booking.id, now=now)

        assert result["reference"] == "TFC-20250114-222222"

    def test_gives_up_after_repeated_collisions(
        self, db: Session, service: TfcService, parent, activity, now: datetime, monkeypatch
    ) -> None:
        booking = create_booking(
            db, parent=parent, activity=activity, payment_method="tfc", payment_status="pending_payment"
        )
        db.commit()
        monkeypatch.setattr(service.booking_repository, "tfc_reference_exists", lambda ref: True)

        with pytest.raises(ServiceException) as exc_info:
            service.create_tfc_booking(booking.id, now=now)

        assert exc_info.value.code == "TFC_REFERENCE_EXHAUSTED"
        assert db.get(Booking, booking.id).tfc_reference is None


class TestCreateTfcBooking:
    def test_issues_reference_and_deadline(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = create_booking(
            db,
            parent=parent,
            activity=activity,
            amount_pence=12500,
            payment_method="tfc",
            payment_status="pending_payment",
        )
        db.commit()

        result = service.create_tfc_booking(booking.id, now=now)

        assert REFERENCE_PATTERN.match(result["reference"])
        assert result["deadline"] == now + days(5)
        assert result["hold_period_days"] == 5
        assert result["amount_pence"] == 12500
        assert result["payee"]["name"] == "BookOn Platform"
        assert result["payee"]["sort_code"] is None
        assert "Tax-Free Childcare" in result["instructions"]

        stored = db.get(Booking, booking.id)
        assert stored.tfc_reference == result["reference"]
        assert stored.status == "pending"
        assert stored.payment_status == "pending_payment"

    def test_explicit_hold_period(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = create_booking(
            db, parent=parent, activity=activity, payment_method="tfc", payment_status="pending_payment"
        )
        db.commit()

        result = service.create_tfc_booking(booking.id, hold_period_days=3, now=now)

        assert result["deadline"] == now + days(3)

    def test_zero_hold_period_is_rejected(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = create_booking(
            db, parent=parent, activity=activity, payment_method="tfc", payment_status="pending_payment"
        )
        db.commit()

        with pytest.raises(ValidationException) as exc_info:
            service.create_tfc_booking(booking.id, hold_period_days=0, now=now)

        assert exc_info.value.code == "INVALID_HOLD_PERIOD"

    def test_venue_without_tfc(
        self, db: Session, service: TfcService, parent, now: datetime
    ) -> None:
        venue = create_venue(db, tfc_enabled=False)
        activity = create_activity(db, venue, start_at=now + days(7))
        booking = create_booking(
            db, parent=parent, activity=activity, payment_method="tfc", payment_status="pending_payment"
        )
        db.commit()

        with pytest.raises(TfcNotEnabledException):
            service.create_tfc_booking(booking.id, now=now)

    def test_paid_booking_cannot_go_back_to_pending(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = create_booking(db, parent=parent, activity=activity)
        db.commit()

        with pytest.raises(InvalidPaymentStateException):
            service.create_tfc_booking(booking.id, now=now)

    def test_second_reference_for_pending_booking_conflicts(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = _pending(db, parent, activity, now + days(3))

        with pytest.raises(ConflictException) as exc_info:
            service.create_tfc_booking(booking.id, now=now)

        assert exc_info.value.code == "TFC_REFERENCE_EXISTS"


class TestTransitions:
    def test_confirm_payment(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = _pending(db, parent, activity, now + days(3))

        confirmed = service.confirm_payment(booking.id, "admin_1", now=now)

        assert confirmed.payment_status == "paid"
        assert confirmed.status == "confirmed"
        assert confirmed.tfc_confirmed_by_id == "admin_1"
        assert len(_notifications(db, parent.id, "tfc_payment_confirmed")) == 1

    def test_confirm_twice_is_an_invalid_transition(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = _pending(db, parent, activity, now + days(3))
        service.confirm_payment(booking.id, "admin_1", now=now)

        with pytest.raises(InvalidPaymentStateException) as exc_info:
            service.confirm_payment(booking.id, "admin_1", now=now)

        assert exc_info.value.details["current_status"] == "paid"

    def test_confirm_rejects_cancellation_committed_after_read(
        self,
        db: Session,
        service: TfcService,
        parent,
        activity,
        now: datetime,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        booking = _pending(db, parent, activity, now + days(3))
        read = service.booking_repository.get_with_context

        def _read_then_swept(booking_id: str):
            loaded = read(booking_id)
            commit_booking_change_elsewhere(
                db, booking_id, payment_status="cancelled", status="cancelled"
            )
            return loaded

        monkeypatch.setattr(service.booking_repository, "get_with_context", _read_then_swept)

        with pytest.raises(InvalidPaymentStateException) as exc_info:
            service.confirm_payment(booking.id, "admin_1", now=now)

        assert exc_info.value.details["current_status"] == "cancelled"
        db.expire_all()
        assert db.get(Booking, booking.id).payment_status == "cancelled"
        assert _notifications(db, parent.id, "tfc_payment_confirmed") == []

    def test_confirm_non_tfc_booking(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = create_booking(db, parent=parent, activity=activity, payment_status="pending_payment")
        db.commit()

        with pytest.raises(ValidationException) as exc_info:
            service.confirm_payment(booking.id, "admin_1", now=now)

        assert exc_info.value.code == "NOT_TFC_BOOKING"

    def test_cancel_unpaid_booking(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = _pending(db, parent, activity, now + days(3))

        cancelled = service.cancel_unpaid_booking(booking.id, admin_id="admin_1", now=now)

        assert cancelled.payment_status == "cancelled"
        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == "Payment not received by deadline"
        assert cancelled.cancellation_outcome == "not_paid"
        assert len(_notifications(db, parent.id, "tfc_booking_cancelled")) == 1

    def test_cancelled_booking_cannot_be_confirmed(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = _pending(db, parent, activity, now + days(3))
        service.cancel_unpaid_booking(booking.id, admin_id="admin_1", reason="Parent withdrew", now=now)

        with pytest.raises(InvalidPaymentStateException):
            service.confirm_payment(booking.id, "admin_1", now=now)

        assert db.get(Booking, booking.id).payment_status == "cancelled"

    def test_bulk_confirm_reports_each_failure(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        first = _pending(db, parent, activity, now + days(1))
        second = _pending(db, parent, activity, now + days(2))
        paid = create_booking(db, parent=parent, activity=activity, payment_method="tfc")
        db.commit()

        result = service.bulk_confirm(
            [first.id, paid.id, second.id, "missing", first.id], "admin_1", now=now
        )

        assert result["success"] == 2
        assert result["failed"] == 2
        assert {f["booking_id"]: f["code"] for f in result["failures"]} == {
            paid.id: "INVALID_PAYMENT_STATE",
            "missing": "BOOKING_NOT_FOUND",
        }
        assert db.get(Booking, second.id).payment_status == "paid"

    def test_bulk_confirm_limit(self, service: TfcService) -> None:
        with pytest.raises(ValidationException):
            service.bulk_confirm([f"b{i}" for i in range(201)], "admin_1")


class TestQueuesAndSweeps:
    def test_pending_queue_is_ordered_by_deadline(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        later = _pending(db, parent, activity, now + days(4))
        sooner = _pending(db, parent, activity, now + hours(36))

        queue = service.get_pending_queue(now=now)

        assert [entry["id"] for entry in queue] == [sooner.id, later.id]
        assert queue[0]["days_remaining"] == 2
        assert queue[0]["hours_until_deadline"] == pytest.approx(36.0)
        assert queue[0]["activity"] == "Holiday Football Camp"
        assert queue[0]["reminder_sent"] is False

    def test_pending_queue_filters_by_venue(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        _pending(db, parent, activity, now + days(2))
        other_venue = create_venue(db, tfc_enabled=True)
        other_activity = create_activity(db, other_venue, start_at=now + days(10))
        other = _pending(db, parent, other_activity, now + days(2))

        queue = service.get_pending_queue(venue_id=other_venue.id, now=now)

        assert [entry["id"] for entry in queue] == [other.id]

    def test_approaching_deadline_window(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        near = _pending(db, parent, activity, now + hours(20))
        _pending(db, parent, activity, now + hours(60))
        _pending(db, parent, activity, now - hours(1))

        entries = service.get_bookings_approaching_deadline(hours=48, now=now)

        assert [entry["id"] for entry in entries] == [near.id]

    def test_reminders_are_sent_once_inside_window(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        near = _pending(db, parent, activity, now + hours(30))
        far = _pending(db, parent, activity, now + hours(72))

        assert service.send_deadline_reminders(now=now) == 1
        assert service.send_deadline_reminders(now=now) == 0

        assert db.get(Booking, near.id).tfc_reminder_sent_at is not None
        assert db.get(Booking, far.id).tfc_reminder_sent_at is None
        reminders = _notifications(db, parent.id, "tfc_payment_reminder")
        assert len(reminders) == 1
        assert reminders[0].data["tfc_reference"] == near.tfc_reference

    def test_auto_cancel_releases_expired_bookings(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        expired = _pending(db, parent, activity, now - hours(1))
        still_open = _pending(db, parent, activity, now + hours(1))

        assert [entry["id"] for entry in service.get_expired_bookings(now=now)] == [expired.id]
        assert service.auto_cancel_expired(now=now) == 1
        assert service.auto_cancel_expired(now=now) == 0

        cancelled = db.get(Booking, expired.id)
        assert cancelled.payment_status == "cancelled"
        assert cancelled.cancelled_by_id == "system"
        assert cancelled.cancellation_reason == TFC_AUTO_CANCEL_REASON
        assert db.get(Booking, still_open.id).payment_status == "pending_payment"

    def test_confirmed_booking_is_not_auto_cancelled(
        self, db: Session, service: TfcService, parent, activity, now: datetime
    ) -> None:
        booking = _pending(db, parent, activity, now + hours(1))
        service.confirm_payment(booking.id, "admin_1", now=now)

        assert service.auto_cancel_expired(now=now + hours(2)) == 0
        assert db.get(Booking, booking.id).payment_status == "paid"

    def test_auto_cancel_skips_booking_confirmed_after_sweep_read(
        self,
        db: Session,
        service: TfcService,
        parent,
        activity,
        now: datetime,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        booking = _pending(db, parent, activity, now - hours(1))
        read = service.booking_repository.get_expired_tfc_bookings

        def _read_then_confirmed(**kwargs):
            expired = read(**kwargs)
            commit_booking_change_elsewhere(
                db, booking.id, payment_status="paid", status="confirmed"
            )
            return expired

        monkeypatch.setattr(
            service.booking_repository, "get_expired_tfc_bookings", _read_then_confirmed
        )

        assert service.auto_cancel_expired(now=now) == 0
        db.expire_all()
        assert db.get(Booking, booking.id).payment_status == "paid"
        assert _notifications(db, parent.id, "tfc_booking_cancelled") == []
