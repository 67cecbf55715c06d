from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundException, ValidationException
from app.services.franchise_fee_service import FranchiseFeeService
from tests.factories import create_business_account, create_venue


@pytest.fixture
def service(db: Session) -> FranchiseFeeService:
    return FranchiseFeeService(db)


def test_update_config_persists_fee_settings(db: Session, service: FranchiseFeeService) -> None:
    account = create_business_account(db)
    db.commit()

    updated = service.update_config(
        account.id, fee_type="fixed", fee_value=350, vat_mode="exclusive", admin_fee_pence=50
    )

    assert updated.franchise_fee_type == "fixed"
    assert Decimal(updated.franchise_fee_value) == Decimal("350")
    assert updated.vat_mode == "exclusive"
    assert updated.admin_fee_pence == 50


def test_update_config_rejects_percentage_over_one_hundred(
    db: Session, service: FranchiseFeeService
) -> None:
    account = create_business_account(db)
    db.commit()

    with pytest.raises(ValidationException):
        service.update_config(account.id, fee_type="percent", fee_value=150, vat_mode="inclusive")


def test_update_config_for_unknown_account(service: FranchiseFeeService) -> None:
    with pytest.raises(NotFoundException):
        service.update_config("missing", fee_type="percent", fee_value=5, vat_mode="inclusive")


def test_list_configs_skips_inactive_accounts(db: Session, service: FranchiseFeeService) -> None:
    active = create_business_account(db)
    create_business_account(db, is_active=False)
    db.commit()

    assert [account.id for account in service.list_configs()] == [active.id]


def test_venue_inherits_business_account_fee(db: Session, service: FranchiseFeeService) -> None:
    venue = create_venue(db, business_account=create_business_account(db, fee_value=10))
    db.commit()

    breakdown = service.calculate_for_venue(venue.id, 10000)

    assert breakdown.franchise_fee_pence == 1000
    assert breakdown.vat_mode == "inclusive"


def test_venue_override_replaces_fee_but_keeps_account_vat_and_admin_fee(
    db: Session, service: FranchiseFeeService
) -> None:
    account = create_business_account(db, fee_value=10, vat_mode="exclusive", admin_fee_pence=75)
    venue = create_venue(db, business_account=account)
    db.commit()

    service.update_venue_override(
        venue.id, inherit_franchise_fee=False, fee_type="fixed", fee_value=400
    )
    breakdown = service.calculate_for_venue(venue.id, 10000)

    assert breakdown.fee_type == "fixed"
    assert breakdown.franchise_fee_pence == 400
    assert breakdown.vat_pence == 80
    assert breakdown.admin_fee_pence == 75
    assert breakdown.net_to_venue_pence == 10000 - 400 - 75


def test_returning_to_inheritance_clears_override(db: Session, service: FranchiseFeeService) -> None:
    venue = create_venue(db)
    db.commit()
    service.update_venue_override(
        venue.id, inherit_franchise_fee=False, fee_type="percent", fee_value=20
    )

    venue = service.update_venue_override(venue.id, inherit_franchise_fee=True)

    assert venue.inherit_franchise_fee is True
    assert venue.franchise_fee_type is None
    assert venue.franchise_fee_value is None


def test_override_needs_type_and_value(db: Session, service: FranchiseFeeService) -> None:
    venue = create_venue(db)
    db.commit()

    with pytest.raises(ValidationException) as exc_info:
        service.update_venue_override(venue.id, inherit_franchise_fee=False, fee_type="fixed")

    assert exc_info.value.code == "INCOMPLETE_OVERRIDE"


def test_negative_gross_is_rejected(db: Session, service: FranchiseFeeService) -> None:
    venue = create_venue(db)
    db.commit()

    with pytest.raises(ValidationException):
        service.calculate_for_venue(venue.id, -1)


def test_unknown_venue(service: FranchiseFeeService) -> None:
    with pytest.raises(NotFoundException):
        service.calculate_for_venue("missing", 1000)
