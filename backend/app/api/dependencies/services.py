# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets services bound to its own database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.franchise_fee_service import FranchiseFeeService
from ...services.refund_policy_service import RefundPolicyService
from ...services.tfc_service import TfcService
from ...services.wallet_service import WalletService
from .database import get_db


def get_refund_policy_service(db: Session = Depends(get_db)) -> RefundPolicyService:
    """Provide cancellation and refund service instance."""
    return RefundPolicyService(db)


def get_franchise_fee_service(db: Session = Depends(get_db)) -> FranchiseFeeService:
    return FranchiseFeeService(db)


def get_tfc_service(db: Session = Depends(get_db)) -> TfcService:
    """Provide Tax-Free Childcare service instance."""
    return TfcService(db)


def get_wallet_service(db: Session = Depends(get_db)) -> WalletService:
    """Provide wallet service instance."""
    return WalletService(db)
