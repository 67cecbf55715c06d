"""V1 Tax-Free Childcare endpoints - mounted at /api/v1/tfc."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies.services import get_tfc_service
from ...core.exceptions import DomainException
from ...schemas.tfc import (
    BulkConfirmRequest,
    BulkConfirmResponse,
    CancelTfcBookingRequest,
    ConfirmTfcPaymentRequest,
    CreateTfcBookingRequest,
    TfcBookingStatusResponse,
    TfcQueueEntry,
    TfcReferenceResponse,
)
from ...services.tfc_service import TfcService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tfc"])


@router.post("/bookings/{booking_id}", response_model=TfcReferenceResponse)
def create_tfc_booking(
    booking_id: str,
    payload: Optional[CreateTfcBookingRequest] = None,
    service: TfcService = Depends(get_tfc_service),
) -> TfcReferenceResponse:
    """Issue a TFC payment reference and deadline for a booking."""
    payload = payload or CreateTfcBookingRequest()
    try:
        reference = service.create_tfc_booking(
            booking_id, hold_period_days=payload.hold_period_days
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return TfcReferenceResponse(**reference)


@router.post("/bookings/{booking_id}/confirm", response_model=TfcBookingStatusResponse)
def confirm_tfc_payment(
    booking_id: str,
    payload: ConfirmTfcPaymentRequest,
    service: TfcService = Depends(get_tfc_service),
) -> TfcBookingStatusResponse:
    try:
        booking = service.confirm_payment(booking_id, payload.admin_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return TfcBookingStatusResponse.model_validate(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=TfcBookingStatusResponse)
def cancel_unpaid_tfc_booking(
    booking_id: str,
    payload: CancelTfcBookingRequest,
    service: TfcService = Depends(get_tfc_service),
) -> TfcBookingStatusResponse:
    try:
        booking = service.cancel_unpaid_booking(
            booking_id, admin_id=payload.admin_id, reason=payload.reason
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return TfcBookingStatusResponse.model_validate(booking)


@router.post("/bulk-confirm", response_model=BulkConfirmResponse)
def bulk_confirm_tfc_payments(
    payload: BulkConfirmRequest,
    service: TfcService = Depends(get_tfc_service),
) -> BulkConfirmResponse:
    try:
        result = service.bulk_confirm(payload.booking_ids, payload.admin_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return BulkConfirmResponse(**result)


@router.get("/pending", response_model=List[TfcQueueEntry])
def get_pending_tfc_queue(
    venue_id: Optional[str] = Query(default=None),
    service: TfcService = Depends(get_tfc_service),
) -> List[TfcQueueEntry]:
    return [TfcQueueEntry(**entry) for entry in service.get_pending_queue(venue_id=venue_id)]


@router.get("/approaching-deadline", response_model=List[TfcQueueEntry])
def get_tfc_approaching_deadline(
    hours: int = Query(default=48, ge=0, le=24 * 30),
    service: TfcService = Depends(get_tfc_service),
) -> List[TfcQueueEntry]:
    try:
        entries = service.get_bookings_approaching_deadline(hours=hours)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return [TfcQueueEntry(**entry) for entry in entries]


@router.get("/expired", response_model=List[TfcQueueEntry])
def get_expired_tfc_bookings(
    service: TfcService = Depends(get_tfc_service),
) -> List[TfcQueueEntry]:
    return [TfcQueueEntry(**entry) for entry in service.get_expired_bookings()]
