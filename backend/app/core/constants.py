"""Application-wide constants for the BookOn settlement backend."""

from __future__ import annotations

import os

BRAND_NAME = "BookOn"
API_TITLE = f"{BRAND_NAME} Settlement API"
API_DESCRIPTION = (
    f"Backend API for {BRAND_NAME} - cancellations, refunds, franchise fees, "
    "Tax-Free Childcare payments and parent wallets"
)
API_VERSION = "1.0.0"

# Frontend URLs
DEFAULT_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def _split_env(name: str) -> list[str]:
    value = os.getenv(name, "")
    return [origin.strip() for origin in value.split(",") if origin.strip()]


ALLOWED_ORIGINS = (
    _split_env("ALLOWED_ORIGINS") or _split_env("CORS_ALLOW_ORIGINS") or DEFAULT_DEV_ORIGINS
)

# TFC references look like TFC-20250114-482913
TFC_REFERENCE_PREFIX = "TFC"
TFC_REFERENCE_SUFFIX_MIN = 100000
TFC_REFERENCE_SUFFIX_MAX = 999999
TFC_REFERENCE_MAX_ATTEMPTS = 10
TFC_AUTO_CANCEL_REASON = "Payment deadline exceeded"
TFC_DEFAULT_INSTRUCTIONS = """Please make your Tax-Free Childcare payment using the reference number provided.

Payment Instructions:
1. Log into your Tax-Free Childcare account
2. Use the reference number shown above
3. Make payment for the exact amount
4. Payment must be received within the deadline to secure your place

If you have any questions, please contact us immediately."""
TFC_DEFAULT_PAYEE_NAME = "BookOn Platform"
TFC_DEFAULT_PAYEE_REFERENCE = "BOOKON-TFC"

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000
DEFAULT_CREDIT_HISTORY_LIMIT = 50
MAX_BULK_CONFIRM = 200
