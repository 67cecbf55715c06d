"""V1 cancellation endpoints - mounted at /api/v1/cancellations."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies.services import get_refund_policy_service
from ...core.exceptions import DomainException
from ...schemas.cancellations import (
    CancelBookingRequest,
    CancellationHistoryResponse,
    CancellationPreviewRequest,
    CancellationResponse,
    CancellationStatsResponse,
    RefundCalculationResponse,
)
from ...services.refund_policy_service import RefundPolicyService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cancellations"])


@router.get("/stats", response_model=CancellationStatsResponse)
def get_cancellation_stats(
    venue_id: Optional[str] = Query(default=None),
    service: RefundPolicyService = Depends(get_refund_policy_service),
) -> CancellationStatsResponse:
    try:
        stats = service.get_cancellation_stats(venue_id=venue_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return CancellationStatsResponse(**stats)


@router.post("/{booking_id}/preview", response_model=RefundCalculationResponse)
def preview_cancellation(
    booking_id: str,
    payload: Optional[CancellationPreviewRequest] = None,
    service: RefundPolicyService = Depends(get_refund_policy_service),
) -> RefundCalculationResponse:
    """Show what cancelling would refund, without cancelling."""
    payload = payload or CancellationPreviewRequest()
    try:
        calculation = service.preview_cancellation(
            booking_id,
            is_provider_cancellation=payload.is_provider_cancellation,
            refund_method=payload.refund_method,
            cancelled_at=payload.cancelled_at,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return RefundCalculationResponse(**calculation.to_payload())


@router.post("/{booking_id}", response_model=CancellationResponse)
def cancel_booking(
    booking_id: str,
    payload: CancelBookingRequest,
    service: RefundPolicyService = Depends(get_refund_policy_service),
) -> CancellationResponse:
    try:
        result = service.cancel_booking(
            booking_id,
            actor_id=payload.actor_id,
            reason=payload.reason,
            is_provider_cancellation=payload.is_provider_cancellation,
            refund_method=payload.refund_method,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    return CancellationResponse.model_validate(
        {
            "booking_id": result.booking.id,
            "status": result.booking.status,
            "payment_status": result.booking.payment_status,
            "calculation": result.calculation.to_payload(),
            "refund_transaction": result.refund_transaction,
            "credit": result.credit,
        },
        from_attributes=True,
    )


@router.get("/{booking_id}/history", response_model=CancellationHistoryResponse)
def get_cancellation_history(
    booking_id: str,
    service: RefundPolicyService = Depends(get_refund_policy_service),
) -> CancellationHistoryResponse:
    try:
        history = service.get_cancellation_history(booking_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return CancellationHistoryResponse.model_validate(history, from_attributes=True)
