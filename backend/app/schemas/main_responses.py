"""Schemas for service-level endpoints."""

from .base import StandardizedModel


class HealthResponse(StandardizedModel):
    status: str
    service: str
    version: str
    environment: str
    database: str
