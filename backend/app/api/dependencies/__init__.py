# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .database import get_db
from .services import (
    get_franchise_fee_service,
    get_refund_policy_service,
    get_tfc_service,
    get_wallet_service,
)

__all__ = [
    # Database
    "get_db",
    # Services
    "get_franchise_fee_service",
    "get_refund_policy_service",
    "get_tfc_service",
    "get_wallet_service",
]
