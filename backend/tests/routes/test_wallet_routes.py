from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.utils.time_helpers import utcnow
from tests.factories import create_credit, create_parent, create_venue, days


def test_issue_and_read_balance(client: TestClient, db: Session) -> None:
    parent = create_parent(db)
    db.commit()

    issued = client.post(
        f"/api/v1/wallet/{parent.id}/credits",
        json={"amount_pence": 2500, "source": "goodwill", "description": "Sorry about the rain"},
    )
    balance = client.get(f"/api/v1/wallet/{parent.id}")

    assert issued.status_code == 201
    assert issued.json()["source"] == "goodwill"
    assert balance.status_code == 200
    assert balance.json()["available_pence"] == 2500
    assert balance.json()["by_provider"] == {"general": 2500}


def test_issue_for_unknown_parent(client: TestClient) -> None:
    response = client.post("/api/v1/wallet/missing/credits", json={"amount_pence": 100})

    assert response.status_code == 404


def test_use_credits(client: TestClient, db: Session) -> None:
    parent = create_parent(db)
    create_credit(db, parent=parent, amount_pence=1000, expiry_date=utcnow() + days(30))
    db.commit()

    response = client.post(
        f"/api/v1/wallet/{parent.id}/use", json={"amount_pence": 400, "booking_id": "b1"}
    )

    assert response.status_code == 200
    assert response.json()["usages"][0]["remaining_pence"] == 600


def test_use_more_than_balance(client: TestClient, db: Session) -> None:
    parent = create_parent(db)
    create_credit(db, parent=parent, amount_pence=100, expiry_date=utcnow() + days(30))
    db.commit()

    response = client.post(f"/api/v1/wallet/{parent.id}/use", json={"amount_pence": 400})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["code"] == "INSUFFICIENT_CREDITS"
    assert detail["details"]["available_pence"] == 100


def test_use_rejects_non_positive_amount(client: TestClient, db: Session) -> None:
    parent = create_parent(db)
    db.commit()

    response = client.post(f"/api/v1/wallet/{parent.id}/use", json={"amount_pence": 0})

    assert response.status_code == 422


def test_transfer(client: TestClient, db: Session) -> None:
    parent = create_parent(db)
    source, target = create_venue(db), create_venue(db)
    create_credit(
        db, parent=parent, amount_pence=800, expiry_date=utcnow() + days(30), provider_id=source.id
    )
    db.commit()

    response = client.post(
        f"/api/v1/wallet/{parent.id}/transfer",
        json={"from_provider_id": source.id, "to_provider_id": target.id, "amount_pence": 500},
    )

    assert response.status_code == 200
    assert response.json()["new_credit"]["provider_id"] == target.id
    assert response.json()["new_credit"]["amount_pence"] == 500


def test_history_expiring_and_stats(client: TestClient, db: Session) -> None:
    parent = create_parent(db)
    create_credit(db, parent=parent, amount_pence=300, expiry_date=utcnow() + days(5))
    create_credit(db, parent=parent, amount_pence=700, expiry_date=utcnow() + days(200))
    db.commit()

    history = client.get(f"/api/v1/wallet/{parent.id}/history")
    expiring = client.get("/api/v1/wallet/expiring", params={"days_ahead": 30})
    stats = client.get("/api/v1/wallet/stats")

    assert len(history.json()) == 2
    assert [credit["amount_pence"] for credit in expiring.json()] == [300]
    assert stats.json()["total_issued_pence"] == 1000
    assert stats.json()["active_credits"] == 2
