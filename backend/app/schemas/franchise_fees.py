"""Schemas for franchise fee configuration and calculation."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, model_validator

from ..core.enums import FranchiseFeeType, VatMode
from .base import StandardizedModel, StrictRequestModel


class FranchiseFeeConfigResponse(StandardizedModel):
    id: str
    name: str
    franchise_fee_type: FranchiseFeeType
    franchise_fee_value: Decimal
    vat_mode: VatMode
    admin_fee_pence: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FranchiseFeeConfigUpdate(StrictRequestModel):
    franchise_fee_type: FranchiseFeeType
    franchise_fee_value: Decimal = Field(..., ge=0)
    vat_mode: VatMode
    admin_fee_pence: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _percent_in_range(self) -> "FranchiseFeeConfigUpdate":
        if self.franchise_fee_type == FranchiseFeeType.PERCENT.value and self.franchise_fee_value > 100:
            raise ValueError("Percentage franchise fee must be between 0 and 100")
        return self


class VenueFranchiseFeeResponse(StandardizedModel):
    venue_id: str = Field(validation_alias="id")
    business_account_id: Optional[str] = None
    inherit_franchise_fee: bool
    franchise_fee_type: Optional[FranchiseFeeType] = None
    franchise_fee_value: Optional[Decimal] = None


class VenueFranchiseFeeUpdate(StrictRequestModel):
    inherit_franchise_fee: bool
    franchise_fee_type: Optional[FranchiseFeeType] = None
    franchise_fee_value: Optional[Decimal] = Field(default=None, ge=0)


class FranchiseFeeCalculationRequest(StrictRequestModel):
    gross_pence: int = Field(..., ge=0)


class FranchiseFeeBreakdownResponse(StandardizedModel):
    gross_pence: int
    franchise_fee_pence: int
    vat_pence: int
    fee_excluding_vat_pence: int
    admin_fee_pence: int
    net_to_venue_pence: int
    fee_type: FranchiseFeeType
    fee_value: Decimal
    vat_mode: VatMode
