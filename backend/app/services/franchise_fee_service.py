# backend/app/services/franchise_fee_service.py
"""
Franchise fee configuration and calculation.

Each business account carries a franchise fee (a percentage of the gross
or a fixed amount in pence), a VAT mode and an optional admin fee. A venue
may override the fee type and value; VAT mode and admin fee always come
from the business account.
"""

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import FranchiseFeeType, VatMode
from ..core.exceptions import NotFoundException, ValidationException
from ..models.venue import BusinessAccount, Venue
from ..repositories.factory import RepositoryFactory
from ..utils.money import round_half_up, to_decimal
from .base import BaseService

logger = logging.getLogger(__name__)

MAX_PERCENT = Decimal("100")


@dataclass(frozen=True)
class FranchiseFeeConfig:
    fee_type: str
    fee_value: Decimal
    vat_mode: str = VatMode.INCLUSIVE.value
    admin_fee_pence: int = 0
    vat_rate: Decimal = Decimal("0.20")


@dataclass(frozen=True)
class FranchiseFeeBreakdown:
    gross_pence: int
    franchise_fee_pence: int
    vat_pence: int
    fee_excluding_vat_pence: int
    admin_fee_pence: int
    net_to_venue_pence: int
    fee_type: str
    fee_value: Decimal
    vat_mode: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "gross_pence": self.gross_pence,
            "franchise_fee_pence": self.franchise_fee_pence,
            "vat_pence": self.vat_pence,
            "fee_excluding_vat_pence": self.fee_excluding_vat_pence,
            "admin_fee_pence": self.admin_fee_pence,
            "net_to_venue_pence": self.net_to_venue_pence,
            "fee_type": self.fee_type,
            "fee_value": str(self.fee_value),
            "vat_mode": self.vat_mode,
        }


def validate_fee(fee_type: str, fee_value: Union[Decimal, float, int, str]) -> Decimal:
    """Check a fee type/value pair and return the value as a Decimal."""
    if fee_type not in (FranchiseFeeType.PERCENT.value, FranchiseFeeType.FIXED.value):
        raise ValidationException(
            f"Unknown franchise fee type '{fee_type}'", code="INVALID_FEE_TYPE"
        )
    value = to_decimal(fee_value)
    if value < 0:
        raise ValidationException("Franchise fee cannot be negative", code="INVALID_FEE_VALUE")
    if fee_type == FranchiseFeeType.PERCENT.value and value > MAX_PERCENT:
        raise ValidationException(
            "Percentage franchise fee must be between 0 and 100", code="INVALID_FEE_VALUE"
        )
    return value


def calculate_franchise_fee(gross_pence: int, config: FranchiseFeeConfig) -> FranchiseFeeBreakdown:
    """
    Split a gross amount into franchise fee, VAT, admin fee and venue net.

    Inclusive VAT is carved out of the fee; exclusive VAT is charged on top
    and does not change the fee deducted from the venue.
    """
    value = validate_fee(config.fee_type, config.fee_value)
    if config.vat_mode not in (VatMode.INCLUSIVE.value, VatMode.EXCLUSIVE.value):
        raise ValidationException(f"Unknown VAT mode '{config.vat_mode}'", code="INVALID_VAT_MODE")

    if config.fee_type == FranchiseFeeType.PERCENT.value:
        fee = round_half_up(Decimal(gross_pence) * value / 100)
    else:
        fee = round_half_up(value)

    rate = to_decimal(config.vat_rate)
    if config.vat_mode == VatMode.INCLUSIVE.value:
        vat = round_half_up(Decimal(fee) * rate / (1 + rate))
        fee_ex_vat = fee - vat
    else:
        vat = round_half_up(Decimal(fee) * rate)
        fee_ex_vat = fee

    admin_fee = int(config.admin_fee_pence or 0)
    return FranchiseFeeBreakdown(
        gross_pence=gross_pence,
        franchise_fee_pence=fee,
        vat_pence=vat,
        fee_excluding_vat_pence=fee_ex_vat,
        admin_fee_pence=admin_fee,
        net_to_venue_pence=gross_pence - fee - admin_fee,
        fee_type=config.fee_type,
        fee_value=value,
        vat_mode=config.vat_mode,
    )


class FranchiseFeeService(BaseService):
    """Reads and updates franchise fee settings and prices venue takings."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.venue_repository = RepositoryFactory.create_venue_repository(db)

    def _get_account(self, business_account_id: str) -> BusinessAccount:
        account = self.venue_repository.get_business_account(business_account_id)
        if account is None:
            raise NotFoundException(
                f"Business account {business_account_id} not found",
                code="BUSINESS_ACCOUNT_NOT_FOUND",
            )
        return account

    def _get_venue(self, venue_id: str) -> Venue:
        venue = self.venue_repository.get_with_business_account(venue_id)
        if venue is None:
            raise NotFoundException(f"Venue {venue_id} not found", code="VENUE_NOT_FOUND")
        return venue

    @BaseService.measure_operation("franchise_get_config")
    def get_config(self, business_account_id: str) -> BusinessAccount:
        return self._get_account(business_account_id)

    @BaseService.measure_operation("franchise_list_configs")
    def list_configs(self) -> List[BusinessAccount]:
        """Active business accounts, newest first."""
        return self.venue_repository.list_active_business_accounts()

    @BaseService.measure_operation("franchise_update_config")
    def update_config(
        self,
        business_account_id: str,
        *,
        fee_type: str,
        fee_value: Union[Decimal, float, int, str],
        vat_mode: str,
        admin_fee_pence: Optional[int] = None,
    ) -> BusinessAccount:
        value = validate_fee(fee_type, fee_value)
        if vat_mode not in (VatMode.INCLUSIVE.value, VatMode.EXCLUSIVE.value):
            raise ValidationException(f"Unknown VAT mode '{vat_mode}'", code="INVALID_VAT_MODE")
        if admin_fee_pence is not None and admin_fee_pence < 0:
            raise ValidationException("Admin fee cannot be negative", code="INVALID_ADMIN_FEE")

        with self.transaction():
            account = self._get_account(business_account_id)
            account.franchise_fee_type = fee_type
            account.franchise_fee_value = value
            account.vat_mode = vat_mode
            account.admin_fee_pence = admin_fee_pence

        self.log_operation(
            "franchise_fee_updated",
            business_account_id=business_account_id,
            fee_type=fee_type,
            fee_value=str(value),
            vat_mode=vat_mode,
        )
        return account

    @BaseService.measure_operation("franchise_get_venue_override")
    def get_venue_override(self, venue_id: str) -> Venue:
        return self._get_venue(venue_id)

    @BaseService.measure_operation("franchise_update_venue_override")
    def update_venue_override(
        self,
        venue_id: str,
        *,
        inherit_franchise_fee: bool,
        fee_type: Optional[str] = None,
        fee_value: Optional[Union[Decimal, float, int, str]] = None,
    ) -> Venue:
        """
        Set or clear a venue's own franchise fee.

        Inheriting clears the override; an override needs both a type and
        a value.
        """
        value: Optional[Decimal] = None
        if not inherit_franchise_fee:
            if fee_type is None or fee_value is None:
                raise ValidationException(
                    "A venue override needs both a fee type and a fee value",
                    code="INCOMPLETE_OVERRIDE",
                )
            value = validate_fee(fee_type, fee_value)

        with self.transaction():
            venue = self._get_venue(venue_id)
            venue.inherit_franchise_fee = inherit_franchise_fee
            venue.franchise_fee_type = None if inherit_franchise_fee else fee_type
            venue.franchise_fee_value = value

        self.log_operation(
            "venue_franchise_override_updated",
            venue_id=venue_id,
            inherit_franchise_fee=inherit_franchise_fee,
        )
        return venue

    def effective_config(self, venue: Venue) -> FranchiseFeeConfig:
        account = venue.business_account
        if account is None:
            raise NotFoundException(
                f"Venue {venue.id} has no business account", code="BUSINESS_ACCOUNT_NOT_FOUND"
            )
        if venue.inherit_franchise_fee:
            fee_type, fee_value = account.franchise_fee_type, account.franchise_fee_value
        else:
            fee_type, fee_value = venue.franchise_fee_type, venue.franchise_fee_value or 0
        return FranchiseFeeConfig(
            fee_type=fee_type,
            fee_value=to_decimal(fee_value),
            vat_mode=account.vat_mode,
            admin_fee_pence=int(account.admin_fee_pence or 0),
            vat_rate=to_decimal(settings.vat_rate),
        )

    @BaseService.measure_operation("franchise_calculate_for_venue")
    def calculate_for_venue(self, venue_id: str, gross_pence: int) -> FranchiseFeeBreakdown:
        if gross_pence < 0:
            raise ValidationException("Gross amount cannot be negative", code="INVALID_AMOUNT")
        venue = self._get_venue(venue_id)
        return calculate_franchise_fee(gross_pence, self.effective_config(venue))


__all__ = [
    "FranchiseFeeBreakdown",
    "FranchiseFeeConfig",
    "FranchiseFeeService",
    "calculate_franchise_fee",
    "validate_fee",
]
