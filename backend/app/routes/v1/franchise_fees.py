"""V1 franchise fee endpoints - mounted at /api/v1/franchise-fees."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from ...api.dependencies.services import get_franchise_fee_service
from ...core.exceptions import DomainException
from ...schemas.franchise_fees import (
    FranchiseFeeBreakdownResponse,
    FranchiseFeeCalculationRequest,
    FranchiseFeeConfigResponse,
    FranchiseFeeConfigUpdate,
    VenueFranchiseFeeResponse,
    VenueFranchiseFeeUpdate,
)
from ...services.franchise_fee_service import FranchiseFeeService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["franchise-fees"])


@router.get("/business-accounts", response_model=List[FranchiseFeeConfigResponse])
def list_franchise_fee_configs(
    service: FranchiseFeeService = Depends(get_franchise_fee_service),
) -> List[FranchiseFeeConfigResponse]:
    return [FranchiseFeeConfigResponse.model_validate(a) for a in service.list_configs()]


@router.get("/business-accounts/{business_account_id}", response_model=FranchiseFeeConfigResponse)
def get_franchise_fee_config(
    business_account_id: str,
    service: FranchiseFeeService = Depends(get_franchise_fee_service),
) -> FranchiseFeeConfigResponse:
    try:
        account = service.get_config(business_account_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return FranchiseFeeConfigResponse.model_validate(account)


@router.put("/business-accounts/{business_account_id}", response_model=FranchiseFeeConfigResponse)
def update_franchise_fee_config(
    business_account_id: str,
    payload: FranchiseFeeConfigUpdate,
    service: FranchiseFeeService = Depends(get_franchise_fee_service),
) -> FranchiseFeeConfigResponse:
    try:
        account = service.update_config(
            business_account_id,
            fee_type=payload.franchise_fee_type,
            fee_value=payload.franchise_fee_value,
            vat_mode=payload.vat_mode,
            admin_fee_pence=payload.admin_fee_pence,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return FranchiseFeeConfigResponse.model_validate(account)


@router.get("/venues/{venue_id}", response_model=VenueFranchiseFeeResponse)
def get_venue_franchise_fee(
    venue_id: str,
    service: FranchiseFeeService = Depends(get_franchise_fee_service),
) -> VenueFranchiseFeeResponse:
    try:
        venue = service.get_venue_override(venue_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return VenueFranchiseFeeResponse.model_validate(venue)


@router.put("/venues/{venue_id}", response_model=VenueFranchiseFeeResponse)
def update_venue_franchise_fee(
    venue_id: str,
    payload: VenueFranchiseFeeUpdate,
    service: FranchiseFeeService = Depends(get_franchise_fee_service),
) -> VenueFranchiseFeeResponse:
    try:
        venue = service.update_venue_override(
            venue_id,
            inherit_franchise_fee=payload.inherit_franchise_fee,
            fee_type=payload.franchise_fee_type,
            fee_value=payload.franchise_fee_value,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return VenueFranchiseFeeResponse.model_validate(venue)


@router.post("/venues/{venue_id}/calculate", response_model=FranchiseFeeBreakdownResponse)
def calculate_venue_franchise_fee(
    venue_id: str,
    payload: FranchiseFeeCalculationRequest,
    service: FranchiseFeeService = Depends(get_franchise_fee_service),
) -> FranchiseFeeBreakdownResponse:
    """Split a gross amount into franchise fee, VAT, admin fee and venue net."""
    try:
        breakdown = service.calculate_for_venue(venue_id, payload.gross_pence)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return FranchiseFeeBreakdownResponse.model_validate(breakdown)
