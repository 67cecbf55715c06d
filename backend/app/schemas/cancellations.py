"""Schemas for booking cancellation and refund endpoints."""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field

from .base import StandardizedModel, StrictRequestModel
from .wallet import WalletCreditResponse

ProviderRefundChoice = Literal["cash", "credit"]


class CancellationPreviewRequest(StrictRequestModel):
    is_provider_cancellation: bool = False
    refund_method: Optional[ProviderRefundChoice] = Field(
        default=None, description="Cash or credit choice for provider cancellations"
    )
    cancelled_at: Optional[datetime] = Field(
        default=None, description="Evaluate the policy at this instant instead of now"
    )


class CancelBookingRequest(StrictRequestModel):
    actor_id: Optional[str] = Field(default=None, max_length=26)
    reason: Optional[str] = Field(default=None, max_length=500)
    is_provider_cancellation: bool = False
    refund_method: Optional[ProviderRefundChoice] = None


class RefundCalculationResponse(StandardizedModel):
    outcome: str
    method: str
    refund_pence: int
    credit_pence: int
    admin_fee_pence: int
    refundable_pence: int
    total_sessions: int
    remaining_sessions: int
    hours_before_start: Optional[float] = None
    policy_basis: str


class RefundTransactionResponse(StandardizedModel):
    id: str
    booking_id: str
    amount_pence: int
    fee_pence: int
    method: str
    reason: str
    status: str
    stripe_refund_id: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CancellationResponse(StandardizedModel):
    booking_id: str
    status: str
    payment_status: str
    calculation: RefundCalculationResponse
    refund_transaction: Optional[RefundTransactionResponse] = None
    credit: Optional[WalletCreditResponse] = None


class CancellationHistoryResponse(StandardizedModel):
    booking_id: str
    status: str
    payment_status: str
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    outcome: Optional[str] = None
    refund_pence: int = 0
    credit_pence: int = 0
    admin_fee_pence: int = 0
    refund_transactions: List[RefundTransactionResponse] = Field(default_factory=list)
    credits: List[WalletCreditResponse] = Field(default_factory=list)


class CancellationStatsResponse(StandardizedModel):
    total_cancellations: int
    provider_cancellations: int
    parent_cancellations: int
    by_outcome: Dict[str, int]
    total_refunded_pence: int
    total_credited_pence: int
    total_fees_pence: int
    refunds_by_status: Dict[str, int]
