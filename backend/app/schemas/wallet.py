"""Schemas for parent wallet endpoints."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from ..core.enums import CreditSource
from .base import StandardizedModel, StrictRequestModel


class WalletCreditResponse(StandardizedModel):
    id: str
    parent_id: str
    provider_id: Optional[str] = None
    booking_id: Optional[str] = None
    amount_pence: int
    used_amount_pence: int
    remaining_pence: int
    expiry_date: datetime
    source: str
    status: str
    description: Optional[str] = None
    used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class WalletBalanceResponse(StandardizedModel):
    parent_id: str
    total_pence: int
    available_pence: int
    used_pence: int
    expired_pence: int
    by_provider: Dict[str, int]
    credits: List[WalletCreditResponse]


class UseCreditsRequest(StrictRequestModel):
    amount_pence: int = Field(..., gt=0)
    booking_id: Optional[str] = Field(default=None, max_length=26)
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    provider_id: Optional[str] = Field(default=None, max_length=26)


class CreditUsageItem(StandardizedModel):
    credit_id: str
    amount_pence: int
    remaining_pence: int


class UseCreditsResponse(StandardizedModel):
    transaction_id: str
    amount_pence: int
    usages: List[CreditUsageItem]


class IssueCreditRequest(StrictRequestModel):
    amount_pence: int = Field(..., gt=0)
    source: CreditSource = CreditSource.MANUAL
    provider_id: Optional[str] = Field(default=None, max_length=26)
    booking_id: Optional[str] = Field(default=None, max_length=26)
    description: Optional[str] = Field(default=None, max_length=500)
    expiry_months: Optional[int] = Field(default=None, ge=1, le=60)


class TransferCreditsRequest(StrictRequestModel):
    from_provider_id: str = Field(..., max_length=26)
    to_provider_id: str = Field(..., max_length=26)
    amount_pence: int = Field(..., gt=0)


class TransferCreditsResponse(StandardizedModel):
    transaction_id: str
    amount_pence: int
    usages: List[CreditUsageItem]
    new_credit: WalletCreditResponse


class WalletStatsResponse(StandardizedModel):
    total_credits: int
    active_credits: int
    expired_credits: int
    total_issued_pence: int
    total_used_pence: int
    total_available_pence: int
    total_expired_pence: int
    issued_by_source: Dict[str, int]
