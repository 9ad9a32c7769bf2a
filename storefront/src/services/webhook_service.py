"""
Stripe webhook handling.

Verifies the signed payload, then applies payment outcomes to the order
named in the payment intent's metadata. Successful payments also produce
a finalized invoice for the customer.
"""

import structlog
from typing import Any, Dict, Optional

import stripe

from shared.metrics import get_metrics
from storefront.src.exceptions import (
    NotFoundError,
    ServiceUnavailableError,
    StorefrontError,
    ValidationError,
)
from storefront.src.models.order import OrderStatus
from storefront.src.services.order_service import OrderService
from storefront.src.services.payment_gateway import StripeGateway

logger = structlog.get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class WebhookService:
    """Applies Stripe events to orders."""

    def __init__(self, gateway: Optional[StripeGateway], order_service: OrderService):
        self.gateway = gateway
        self.order_service = order_service

    def verify(self, payload: bytes, signature: Optional[str]) -> Any:
        """
        Verify the signature and parse the event.

        Raises:
            ServiceUnavailableError: Payments not configured
            StorefrontError: Webhook secret missing (500)
            ValidationError: Bad payload or signature
        """
        if self.gateway is None:
            raise ServiceUnavailableError("Payment service is not available")
        if not self.gateway.webhook_secret:
            logger.error("webhook_secret_missing")
            raise StorefrontError("Webhook secret not configured", status_code=500)
        if not signature:
            raise ValidationError("Webhook Error: missing Stripe-Signature header")

        try:
            return self.gateway.construct_webhook_event(payload, signature)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            get_metrics().webhook_events.labels(event_type="unknown", outcome="rejected").inc()
            raise ValidationError(f"Webhook Error: {e}")

    async def handle(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Process one webhook delivery.

        Returns:
            ``{"received": True, "handled": bool}``
        """
        event = self.verify(payload, signature)
        event_type = event["type"]

        if event_type not in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
            logger.info("webhook_event_ignored", event_type=event_type)
            get_metrics().webhook_events.labels(event_type=event_type, outcome="ignored").inc()
            return {"received": True, "handled": False}

        intent = event["data"]["object"]
        order_id = (intent.get("metadata") or {}).get("orderId")
        if not order_id:
            get_metrics().webhook_events.labels(event_type=event_type, outcome="rejected").inc()
            raise ValidationError("Order ID not found in payment intent metadata")

        order = await self.order_service.order_repo.get_order(order_id)
        if order is None:
            get_metrics().webhook_events.labels(event_type=event_type, outcome="rejected").inc()
            raise NotFoundError("Order not found")

        if event_type == PAYMENT_SUCCEEDED:
            order = await self.order_service.set_status(
                order,
                OrderStatus.PAID,
                stripe_payment_id=intent["id"]
            )
            customer_id = intent.get("customer")
            if customer_id:
                await self._issue_invoice(customer_id, order)
        else:
            await self.order_service.set_status(order, OrderStatus.FAILED)

        logger.info("webhook_event_handled", event_type=event_type, order_id=order_id)
        get_metrics().webhook_events.labels(event_type=event_type, outcome="handled").inc()
        return {"received": True, "handled": True}

    async def _issue_invoice(self, customer_id: str, order) -> None:
        """Invoice failures are logged; the order stays paid."""
        try:
            items = await self.order_service.order_repo.list_items(order.id)
            invoice = await self.gateway.create_order_invoice(customer_id, order, items)
            await self.order_service.order_repo.update_order(order.id, stripe_invoice_id=invoice["id"])
        except stripe.StripeError as e:
            logger.error("invoice_creation_failed", order_id=order.document_id, error=str(e))
