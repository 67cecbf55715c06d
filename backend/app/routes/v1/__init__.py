# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import cancellations, franchise_fees, health, tfc, wallet

__all__ = [
    "cancellations",
    "franchise_fees",
    "health",
    "tfc",
    "wallet",
]
