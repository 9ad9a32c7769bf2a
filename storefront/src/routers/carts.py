"""
Cart routers.

``/carts`` manages the caller's active cart. ``/cart-items`` exposes line
listings per cart and stand-alone price quotes. Every endpoint requires
an authenticated user.
"""

import structlog
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from storefront.src.dependencies import get_cart_service, get_current_user
from storefront.src.models.auth import CurrentUser
from storefront.src.models.cart import AddCartItemRequest, CartPricingRequest, UpdateQuantityRequest
from storefront.src.models.common import ErrorResponse, envelope
from storefront.src.services.cart_service import CartService

logger = structlog.get_logger(__name__)

carts_router = APIRouter(
    prefix="/carts",
    tags=["Carts"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse, "description": "Not Found"},
        422: {"model": ErrorResponse, "description": "Validation Error"}
    }
)

cart_items_router = APIRouter(
    prefix="/cart-items",
    tags=["Cart Items"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
        404: {"model": ErrorResponse, "description": "Not Found"}
    }
)


# ============================================================================
# CART
# ============================================================================


@carts_router.get("/me", summary="Get my cart")
async def get_my_cart(
    current_user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
) -> Dict[str, Any]:
    """
    Return the caller's active cart, creating an empty one on first use.

    The stored total is corrected when it no longer matches the lines.
    """
    return envelope(await cart_service.get_cart(current_user))


@carts_router.post("/add", status_code=status.HTTP_200_OK, summary="Add print to cart")
async def add_to_cart(
    request: AddCartItemRequest,
    current_user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
) -> Dict[str, Any]:
    """
    Add a print to the caller's cart.

    **Request Body:**
    - artId: artwork document id
    - paperTypeId: optional paper type document id
    - quantity: number of prints (default 1)
    - width / height: print size in cm (default 30x40)

    **Error Responses:**
    - 400: size or quantity outside the accepted range
    - 404: unknown artwork or paper type
    """
    cart = await cart_service.add_item(current_user, request)
    return envelope(cart)


@carts_router.put("/items/{item_id}", summary="Change line quantity")
async def update_cart_item(
    item_id: str,
    request: UpdateQuantityRequest,
    current_user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
) -> Dict[str, Any]:
    cart = await cart_service.update_item_quantity(current_user, item_id, request.quantity)
    return envelope(cart)


@carts_router.delete("/items/{item_id}", summary="Remove line")
async def remove_cart_item(
    item_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
) -> Dict[str, Any]:
    return envelope(await cart_service.remove_item(current_user, item_id))


@carts_router.delete("/clear", summary="Empty cart")
async def clear_cart(
    current_user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
) -> Dict[str, Any]:
    return envelope(await cart_service.clear_cart(current_user))


# ============================================================================
# CART ITEMS
# ============================================================================


@cart_items_router.get("/by-cart/{cart_id}", summary="Lines of a cart")
async def items_by_cart(
    cart_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
) -> Dict[str, Any]:
    result = await cart_service.cart_items(current_user, cart_id)
    return envelope(result["items"], cart=result["cart"], summary=result["summary"])


@cart_items_router.post("/calculate-pricing", status_code=status.HTTP_200_OK, summary="Quote a cart line")
async def calculate_pricing(
    request: CartPricingRequest,
    current_user: CurrentUser = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
) -> Dict[str, Any]:
    return envelope(await cart_service.calculate_pricing(request))
