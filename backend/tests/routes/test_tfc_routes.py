from __future__ import annotations

import re

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.utils.time_helpers import utcnow
from tests.factories import (
    create_activity,
    create_booking,
    create_parent,
    create_pending_tfc_booking,
    create_venue,
    days,
    hours,
)


def _setup(db: Session):
    parent = create_parent(db)
    venue = create_venue(db, tfc_enabled=True)
    activity = create_activity(db, venue, start_at=utcnow() + days(14))
    return parent, activity


def test_create_reference(client: TestClient, db: Session) -> None:
    parent, activity = _setup(db)
    booking = create_booking(
        db, parent=parent, activity=activity, payment_method="tfc", payment_status="pending_payment"
    )
    db.commit()

    response = client.post(f"/api/v1/tfc/bookings/{booking.id}", json={"hold_period_days": 3})

    assert response.status_code == 200
    body = response.json()
    assert re.match(r"^TFC-\d{8}-\d{6}$", body["reference"])
    assert body["hold_period_days"] == 3
    assert body["payee"]["reference"] == "BOOKON-TFC"


def test_create_reference_for_venue_without_tfc(client: TestClient, db: Session) -> None:
    parent = create_parent(db)
    activity = create_activity(db, create_venue(db), start_at=utcnow() + days(7))
    booking = create_booking(
        db, parent=parent, activity=activity, payment_method="tfc", payment_status="pending_payment"
    )
    db.commit()

    response = client.post(f"/api/v1/tfc/bookings/{booking.id}")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "TFC_NOT_ENABLED"


def test_confirm_and_reconfirm(client: TestClient, db: Session) -> None:
    parent, activity = _setup(db)
    booking = create_pending_tfc_booking(
        db, parent=parent, activity=activity, deadline=utcnow() + days(2)
    )
    db.commit()

    first = client.post(f"/api/v1/tfc/bookings/{booking.id}/confirm", json={"admin_id": "admin_1"})
    second = client.post(f"/api/v1/tfc/bookings/{booking.id}/confirm", json={"admin_id": "admin_1"})

    assert first.status_code == 200
    assert first.json()["payment_status"] == "paid"
    assert second.status_code == 422
    assert second.json()["detail"]["code"] == "INVALID_PAYMENT_STATE"


def test_cancel_unpaid(client: TestClient, db: Session) -> None:
    parent, activity = _setup(db)
    booking = create_pending_tfc_booking(
        db, parent=parent, activity=activity, deadline=utcnow() + days(2)
    )
    db.commit()

    response = client.post(
        f"/api/v1/tfc/bookings/{booking.id}/cancel",
        json={"admin_id": "admin_1", "reason": "Parent asked to cancel"},
    )

    assert response.status_code == 200
    assert response.json()["payment_status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "Parent asked to cancel"


def test_bulk_confirm(client: TestClient, db: Session) -> None:
    parent, activity = _setup(db)
    booking = create_pending_tfc_booking(
        db, parent=parent, activity=activity, deadline=utcnow() + days(2)
    )
    db.commit()

    response = client.post(
        "/api/v1/tfc/bulk-confirm",
        json={"admin_id": "admin_1", "booking_ids": [booking.id, "missing"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] == 1
    assert body["failed"] == 1
    assert body["failures"][0]["booking_id"] == "missing"
    assert body["failures"][0]["code"] == "BOOKING_NOT_FOUND"


def test_queues(client: TestClient, db: Session) -> None:
    parent, activity = _setup(db)
    soon = create_pending_tfc_booking(
        db, parent=parent, activity=activity, deadline=utcnow() + hours(12)
    )
    later = create_pending_tfc_booking(
        db, parent=parent, activity=activity, deadline=utcnow() + days(4)
    )
    overdue = create_pending_tfc_booking(
        db, parent=parent, activity=activity, deadline=utcnow() - hours(2)
    )
    db.commit()

    pending = client.get("/api/v1/tfc/pending").json()
    approaching = client.get("/api/v1/tfc/approaching-deadline", params={"hours": 24}).json()
    expired = client.get("/api/v1/tfc/expired").json()

    assert [entry["id"] for entry in pending] == [overdue.id, soon.id, later.id]
    assert [entry["id"] for entry in approaching] == [soon.id]
    assert [entry["id"] for entry in expired] == [overdue.id]
