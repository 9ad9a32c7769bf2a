"""
Payment routers.

``/stripe`` exposes generic payment intents and refunds. ``/payment``
manages the caller's saved card. All endpoints answer 503 when no Stripe
key is configured.
"""

import structlog
from typing import Any, Dict

from fastapi import APIRouter, Depends

from storefront.src.dependencies import get_current_user, get_payment_service, require_admin
from storefront.src.models.auth import CurrentUser
from storefront.src.models.common import ErrorResponse
from storefront.src.models.payment import ConfirmPaymentRequest, PaymentIntentRequest, RefundRequest
from storefront.src.services.payment_service import PaymentService

logger = structlog.get_logger(__name__)

_responses = {
    401: {"model": ErrorResponse, "description": "Unauthorized"},
    402: {"model": ErrorResponse, "description": "Payment Error"},
    503: {"model": ErrorResponse, "description": "Payment service unavailable"}
}

stripe_router = APIRouter(prefix="/stripe", tags=["Stripe"], responses=_responses)

payment_router = APIRouter(prefix="/payment", tags=["Payment Methods"], responses=_responses)


# ============================================================================
# PAYMENT INTENTS
# ============================================================================


@stripe_router.post("/create-payment-intent", summary="Create payment intent")
async def create_payment_intent(
    request: PaymentIntentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    """
    Create a payment intent for an amount in major currency units.

    **Error Responses:**
    - 400: amount not positive or above the provider maximum
    """
    return await payment_service.create_payment_intent(
        current_user,
        request.amount,
        currency=request.currency,
        order_id=request.order_id
    )


@stripe_router.post("/confirm-payment", summary="Confirm payment intent")
async def confirm_payment(
    request: ConfirmPaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    return await payment_service.confirm_payment(request.payment_intent_id, request.payment_method_id)


@stripe_router.get("/payment-intent/{payment_intent_id}", summary="Get payment intent")
async def get_payment_intent(
    payment_intent_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    return await payment_service.get_payment_intent(current_user, payment_intent_id)


@stripe_router.post("/refund", summary="Refund order")
async def refund_order(
    request: RefundRequest,
    admin: CurrentUser = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    result = await payment_service.refund_order(request.order_id, request.amount)
    logger.info("refund_issued", order_id=request.order_id, admin_id=admin.id)
    return result


# ============================================================================
# SAVED PAYMENT METHODS
# ============================================================================


@payment_router.post("/setup-intent", summary="Start saving a card")
async def create_setup_intent(
    current_user: CurrentUser = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    """Replaces any card saved earlier for the caller."""
    return await payment_service.create_setup_intent(current_user)


@payment_router.get("/payment-methods", summary="List saved cards")
async def payment_methods(
    current_user: CurrentUser = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    return await payment_service.get_payment_methods(current_user)
