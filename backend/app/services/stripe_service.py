# backend/app/services/stripe_service.py
"""
Stripe integration for cash refunds.

Only the refund side of Stripe is used here: card payments are taken by
the booking checkout, and cancellations return the card-paid share
through ``stripe.Refund``.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.exceptions import ServiceException
from .base import BaseService

logger = logging.getLogger(__name__)


class StripeService(BaseService):
    """Thin wrapper over the Stripe SDK used by the refund job."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.stripe_configured = False
        if settings.stripe_enabled and settings.stripe_secret_key is not None:
            stripe.api_key = settings.stripe_secret_key.get_secret_value()
            stripe.max_network_retries = 1
            self.stripe_configured = True
            self.logger.info("Stripe service configured successfully")
        else:
            self.logger.warning("Stripe secret key not configured - refunds stay pending")

    @BaseService.measure_operation("stripe_create_refund")
    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount_pence: int,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Refund part or all of a captured PaymentIntent.

        Returns a dict with the Stripe refund ``id`` and ``status``.
        """
        if not self.stripe_configured:
            raise ServiceException("Stripe is not configured", code="STRIPE_NOT_CONFIGURED")
        if amount_pence <= 0:
            raise ServiceException("Refund amount must be positive", code="INVALID_REFUND_AMOUNT")

        try:
            refund = stripe.Refund.create(
                payment_intent=payment_intent_id,
                amount=amount_pence,
                reason="requested_by_customer",
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating refund for {payment_intent_id}: {str(e)}")
            raise ServiceException(f"Failed to create refund: {str(e)}", code="STRIPE_ERROR") from e

        self.logger.info(
            "Stripe refund created",
            extra={
                "payment_intent_id": payment_intent_id,
                "refund_id": refund.id,
                "amount_pence": amount_pence,
            },
        )
        return {"id": refund.id, "status": getattr(refund, "status", None)}
