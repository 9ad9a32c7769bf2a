"""Stripe webhook endpoint. Public; authenticity comes from the payload signature."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from storefront.src.dependencies import get_webhook_service
from storefront.src.rate_limit import limiter
from storefront.src.services.webhook_service import WebhookService

router = APIRouter(tags=["Webhooks"])


@router.post("/order/stripe-webhook", summary="Stripe webhook")
@limiter.exempt
async def stripe_webhook(
    request: Request,
    webhook_service: WebhookService = Depends(get_webhook_service)
) -> Dict[str, Any]:
    """
    Apply `payment_intent.succeeded` and `payment_intent.payment_failed`
    events to the order named in the intent metadata. Other events are
    acknowledged and ignored.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    return await webhook_service.handle(payload, signature)
