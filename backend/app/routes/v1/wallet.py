"""V1 parent wallet endpoints - mounted at /api/v1/wallet."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies.services import get_wallet_service
from ...core.constants import DEFAULT_CREDIT_HISTORY_LIMIT, MAX_QUERY_LIMIT
from ...core.enums import CreditSource
from ...core.exceptions import DomainException
from ...schemas.wallet import (
    IssueCreditRequest,
    TransferCreditsRequest,
    TransferCreditsResponse,
    UseCreditsRequest,
    UseCreditsResponse,
    WalletBalanceResponse,
    WalletCreditResponse,
    WalletStatsResponse,
)
from ...services.wallet_service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["wallet"])


# Static paths first so they are not captured by /{parent_id}
@router.get("/stats", response_model=WalletStatsResponse)
def get_wallet_stats(
    provider_id: Optional[str] = Query(default=None),
    service: WalletService = Depends(get_wallet_service),
) -> WalletStatsResponse:
    return WalletStatsResponse(**service.get_wallet_stats(provider_id=provider_id))


@router.get("/expiring", response_model=List[WalletCreditResponse])
def get_expiring_credits(
    days_ahead: int = Query(default=30, ge=0, le=365),
    service: WalletService = Depends(get_wallet_service),
) -> List[WalletCreditResponse]:
    try:
        credits = service.get_expiring_credits(days_ahead=days_ahead)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return [WalletCreditResponse.model_validate(credit) for credit in credits]


@router.get("/{parent_id}", response_model=WalletBalanceResponse)
def get_wallet_balance(
    parent_id: str,
    provider_id: Optional[str] = Query(default=None),
    service: WalletService = Depends(get_wallet_service),
) -> WalletBalanceResponse:
    balance = service.get_balance(parent_id, provider_id=provider_id)
    return WalletBalanceResponse.model_validate(balance, from_attributes=True)


@router.post("/{parent_id}/use", response_model=UseCreditsResponse)
def use_wallet_credits(
    parent_id: str,
    payload: UseCreditsRequest,
    service: WalletService = Depends(get_wallet_service),
) -> UseCreditsResponse:
    """Spend credit, oldest expiry first."""
    try:
        result = service.use_credits(
            parent_id,
            payload.amount_pence,
            booking_id=payload.booking_id,
            transaction_id=payload.transaction_id,
            provider_id=payload.provider_id,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return UseCreditsResponse(**result)


@router.post("/{parent_id}/credits", response_model=WalletCreditResponse, status_code=201)
def issue_wallet_credit(
    parent_id: str,
    payload: IssueCreditRequest,
    service: WalletService = Depends(get_wallet_service),
) -> WalletCreditResponse:
    try:
        credit = service.issue_credit(
            parent_id=parent_id,
            amount_pence=payload.amount_pence,
            source=CreditSource(payload.source),
            provider_id=payload.provider_id,
            booking_id=payload.booking_id,
            description=payload.description,
            expiry_months=payload.expiry_months,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return WalletCreditResponse.model_validate(credit)


@router.post("/{parent_id}/transfer", response_model=TransferCreditsResponse)
def transfer_wallet_credits(
    parent_id: str,
    payload: TransferCreditsRequest,
    service: WalletService = Depends(get_wallet_service),
) -> TransferCreditsResponse:
    try:
        result = service.transfer_credits(
            parent_id,
            from_provider_id=payload.from_provider_id,
            to_provider_id=payload.to_provider_id,
            amount_pence=payload.amount_pence,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return TransferCreditsResponse.model_validate(result, from_attributes=True)


@router.get("/{parent_id}/history", response_model=List[WalletCreditResponse])
def get_wallet_history(
    parent_id: str,
    limit: int = Query(default=DEFAULT_CREDIT_HISTORY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    service: WalletService = Depends(get_wallet_service),
) -> List[WalletCreditResponse]:
    credits = service.get_credit_history(parent_id, limit=limit)
    return [WalletCreditResponse.model_validate(credit) for credit in credits]
