"""
Order routers.

``/orders`` covers checkout, order history, staff updates and the card
payment flow for a cart. ``/ordered-items`` covers per-print fulfillment.
"""

import structlog
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.src.dependencies import (
    get_current_user,
    get_order_service,
    get_payment_service,
    require_admin,
)
from storefront.src.models.auth import CurrentUser
from storefront.src.models.common import ErrorResponse, envelope
from storefront.src.models.order import (
    CreateOrderBody,
    CreateOrderRequest,
    FulfillmentUpdateRequest,
    UpdateOrderBody,
)
from storefront.src.models.payment import CartPaymentIntentRequest, ConfirmCartPaymentRequest
from storefront.src.services.order_service import OrderService
from storefront.src.services.payment_service import PaymentService

logger = structlog.get_logger(__name__)

orders_router = APIRouter(
    prefix="/orders",
    tags=["Orders"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
        404: {"model": ErrorResponse, "description": "Not Found"},
        422: {"model": ErrorResponse, "description": "Validation Error"}
    }
)

ordered_items_router = APIRouter(
    prefix="/ordered-items",
    tags=["Ordered Items"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
        404: {"model": ErrorResponse, "description": "Not Found"}
    }
)


# ============================================================================
# ORDERS
# ============================================================================


@orders_router.post("", status_code=status.HTTP_201_CREATED, summary="Create order from cart")
async def create_order(
    body: CreateOrderBody,
    current_user: CurrentUser = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    """
    Check the caller's cart out into a pending order.

    **Request Body:** `{"data": {"cartId": ..., "shipping_cost": ..., "address": {...}}}`
    """
    order = await order_service.create_from_cart(
        current_user,
        body.data.cart_id,
        shipping_cost=body.data.shipping_cost,
        address=body.data.address,
        payment_intent_id=body.data.payment_intent_id
    )
    return envelope(order)


@orders_router.get("", summary="List orders")
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None, alias="userId"),
    include_items: bool = Query(False, alias="includeItems"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    current_user: CurrentUser = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    """Customers see their own orders. Admins see all orders or one user's."""
    orders, pagination = await order_service.list_orders(
        current_user,
        status=status_filter,
        user_id=user_id,
        include_items=include_items,
        page=page,
        page_size=page_size
    )
    return envelope(orders, pagination=pagination.model_dump())


@orders_router.get("/stats", summary="Order statistics")
async def order_statistics(
    admin: CurrentUser = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    return envelope(await order_service.statistics())


@orders_router.post("/create-payment-intent", summary="Start paying for a cart")
async def create_cart_payment_intent(
    request: CartPaymentIntentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    """
    Create a Stripe payment intent for the cart total plus shipping.

    **Error Responses:**
    - 400: empty cart or amount below the provider minimum
    - 503: payments not configured
    """
    return await payment_service.create_payment_intent_for_cart(
        current_user,
        request.cart_id,
        request.shipping_cost
    )


@orders_router.post("/confirm-payment", summary="Complete a paid checkout")
async def confirm_cart_payment(
    request: ConfirmCartPaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> Dict[str, Any]:
    order = await payment_service.confirm_cart_payment(
        current_user,
        request.payment_intent_id,
        request.cart_id
    )
    return envelope(order)


@orders_router.get("/{document_id}", summary="Get order")
async def get_order(
    document_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    return envelope(await order_service.get_order_view(current_user, document_id))


@orders_router.put("/{document_id}", summary="Update order")
async def update_order(
    document_id: str,
    body: UpdateOrderBody,
    admin: CurrentUser = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    order = await order_service.update_order(document_id, body.data)
    logger.info("order_updated", order_id=document_id, admin_id=admin.id)
    return envelope(order)


@orders_router.delete("/{document_id}", summary="Delete order")
async def delete_order(
    document_id: str,
    admin: CurrentUser = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    return envelope(await order_service.delete_order(document_id))


# ============================================================================
# ORDERED ITEMS
# ============================================================================


@ordered_items_router.post("/from-cart", status_code=status.HTTP_201_CREATED, summary="Check out a cart")
async def create_from_cart(
    request: CreateOrderRequest,
    current_user: CurrentUser = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    """Same checkout as `POST /orders`, with a flat request body."""
    order = await order_service.create_from_cart(
        current_user,
        request.cart_id,
        shipping_cost=request.shipping_cost,
        address=request.address,
        payment_intent_id=request.payment_intent_id
    )
    return envelope(order)


@ordered_items_router.get("/fulfillment-pipeline", summary="Fulfillment pipeline")
async def fulfillment_pipeline(
    admin: CurrentUser = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    return envelope(await order_service.fulfillment_pipeline())


@ordered_items_router.get("/stats", summary="Ordered item statistics")
async def ordered_item_statistics(
    admin: CurrentUser = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    return envelope(await order_service.ordered_item_statistics())


@ordered_items_router.get("/by-order/{order_id}", summary="Items of an order")
async def items_by_order(
    order_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    result = await order_service.items_by_order(current_user, order_id)
    return envelope(
        result["items"],
        order=result["order"],
        itemCount=result["itemCount"],
        totalQuantity=result["totalQuantity"],
        totalValue=result["totalValue"]
    )


@ordered_items_router.put("/{document_id}/fulfillment", summary="Update fulfillment status")
async def update_fulfillment(
    document_id: str,
    request: FulfillmentUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service)
) -> Dict[str, Any]:
    item = await order_service.update_fulfillment(document_id, request)
    logger.info(
        "fulfillment_updated",
        item_id=document_id,
        fulfillment_status=request.fulfillment_status,
        admin_id=admin.id
    )
    return envelope(item)
