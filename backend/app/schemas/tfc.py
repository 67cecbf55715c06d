"""Schemas for Tax-Free Childcare payment endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ..core.constants import MAX_BULK_CONFIRM
from .base import StandardizedModel, StrictRequestModel


class CreateTfcBookingRequest(StrictRequestModel):
    hold_period_days: Optional[int] = Field(default=None, ge=1, le=60)


class TfcPayeeDetails(StandardizedModel):
    name: str
    reference: str
    sort_code: Optional[str] = None
    account_number: Optional[str] = None


class TfcReferenceResponse(StandardizedModel):
    booking_id: str
    reference: str
    deadline: datetime
    hold_period_days: int
    amount_pence: int
    instructions: str
    payee: TfcPayeeDetails


class ConfirmTfcPaymentRequest(StrictRequestModel):
    admin_id: str = Field(..., min_length=1, max_length=26)


class CancelTfcBookingRequest(StrictRequestModel):
    admin_id: str = Field(..., min_length=1, max_length=26)
    reason: Optional[str] = Field(default=None, max_length=500)


class BulkConfirmRequest(StrictRequestModel):
    admin_id: str = Field(..., min_length=1, max_length=26)
    booking_ids: List[str] = Field(..., min_length=1, max_length=MAX_BULK_CONFIRM)


class BulkConfirmFailure(StandardizedModel):
    booking_id: str
    code: str
    error: str


class BulkConfirmResponse(StandardizedModel):
    success: int
    failed: int
    failures: List[BulkConfirmFailure] = Field(default_factory=list)


class TfcBookingStatusResponse(StandardizedModel):
    id: str
    status: str
    payment_method: str
    payment_status: str
    tfc_reference: Optional[str] = None
    tfc_deadline: Optional[datetime] = None
    tfc_confirmed_by_id: Optional[str] = None
    tfc_confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class TfcQueueEntry(StandardizedModel):
    id: str
    child: Optional[str] = None
    parent: Optional[str] = None
    parent_email: Optional[str] = None
    activity: Optional[str] = None
    venue: Optional[str] = None
    venue_id: Optional[str] = None
    amount_pence: int
    reference: Optional[str] = None
    deadline: Optional[datetime] = None
    created_at: Optional[datetime] = None
    days_remaining: int
    hours_until_deadline: float
    reminder_sent: bool
