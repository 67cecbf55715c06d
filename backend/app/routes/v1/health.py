# backend/app/routes/v1/health.py
"""
Health check endpoint for monitoring and load balancer probes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.dependencies.database import get_db
from app.core.config import settings
from app.core.constants import API_VERSION, BRAND_NAME
from app.schemas.main_responses import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)) -> HealthResponse:
    """Report service status; a failing database degrades rather than errors."""
    database_status = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Health check database probe failed: %s", exc)
        database_status = "unavailable"

    return HealthResponse(
        status="healthy" if database_status == "ok" else "degraded",
        service=f"{BRAND_NAME.lower()}-settlement-api",
        version=API_VERSION,
        environment=settings.environment,
        database=database_status,
    )
