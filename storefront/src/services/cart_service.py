"""
Cart service.

Maintains one active cart per user: adding configured prints (merging
duplicates), changing quantities, removing lines, keeping the stored total
in step with the lines, and checking the cart out into an order.
"""

import structlog
from typing import Any, Dict, List, Optional, Tuple

from shared.metrics import get_metrics
from storefront.src.config import get_settings
from storefront.src.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from storefront.src.models.auth import CurrentUser
from storefront.src.models.cart import (
    AddCartItemRequest,
    CartDB,
    CartItemDB,
    CartPricingRequest,
    CartStatus,
)
from storefront.src.models.order import OrderDB
from storefront.src.repositories.cart_repo import CartRepository
from storefront.src.repositories.catalog_repo import CatalogRepository
from storefront.src.repositories.order_repo import OrderRepository
from storefront.src.services import pricing

logger = structlog.get_logger(__name__)


def cart_item_view(item: CartItemDB) -> Dict[str, Any]:
    """Serialize a cart line with display values."""
    data = item.model_dump(mode="json")
    data["dimensions"] = pricing.format_dimensions(item.width, item.height)
    data["lineTotal"] = pricing.line_total(item.price, item.quantity)
    data["savings"] = pricing.bulk_savings(item.price, item.quantity)
    data["isCustomSize"] = pricing.is_custom_size(item.width, item.height)
    return data


def items_summary(items: List[CartItemDB]) -> Dict[str, Any]:
    total_value = pricing.cart_total(items)
    return {
        "totalItems": len(items),
        "totalQuantity": sum(item.quantity for item in items),
        "totalValue": total_value,
        "averageItemValue": pricing.round_money(total_value / len(items)) if items else 0.0,
    }


class CartService:
    """Service for cart operations."""

    def __init__(
        self,
        cart_repo: CartRepository,
        catalog_repo: CatalogRepository,
        order_repo: OrderRepository
    ):
        """
        Initialize cart service.

        Args:
            cart_repo: Cart repository
            catalog_repo: Catalog repository (artwork and paper lookups)
            order_repo: Order repository (checkout)
        """
        self.cart_repo = cart_repo
        self.catalog_repo = catalog_repo
        self.order_repo = order_repo
        self.settings = get_settings()

    # ========================================================================
    # Cart lifecycle
    # ========================================================================

    async def get_or_create_cart(self, user: CurrentUser) -> CartDB:
        """Return the user's active cart, creating an empty one if needed."""
        cart = await self.cart_repo.get_active_cart(user.id)
        if cart is None:
            cart = await self.cart_repo.create_cart(user.id)
        return cart

    async def refresh_total(self, cart: CartDB) -> Tuple[CartDB, List[CartItemDB]]:
        """
        Recompute the cart total from its lines.

        The stored total is rewritten only when it drifted.

        Returns:
            Tuple of (cart, items)
        """
        items = await self.cart_repo.list_items(cart.id)
        total = pricing.cart_total(items)
        if pricing.round_money(cart.total_price) != total:
            logger.info(
                "cart_total_corrected",
                cart_id=cart.document_id,
                stored=cart.total_price,
                computed=total
            )
            cart = await self.cart_repo.update_total(cart.id, total)
        return cart, items

    def cart_view(self, cart: CartDB, items: List[CartItemDB]) -> Dict[str, Any]:
        data = cart.model_dump(mode="json")
        data["items"] = [cart_item_view(item) for item in items]
        data["itemCount"] = len(items)
        data["totalQuantity"] = sum(item.quantity for item in items)
        return data

    async def get_cart(self, user: CurrentUser) -> Dict[str, Any]:
        cart = await self.get_or_create_cart(user)
        cart, items = await self.refresh_total(cart)
        return self.cart_view(cart, items)

    # ========================================================================
    # Lines
    # ========================================================================

    async def add_item(self, user: CurrentUser, request: AddCartItemRequest) -> Dict[str, Any]:
        """
        Add a print to the user's cart.

        A line with the same artwork, paper and size absorbs the new
        quantity instead of creating a second line.

        Raises:
            NotFoundError: Unknown artwork or paper type
            ValidationError: Size or quantity outside the accepted range
        """
        errors = pricing.validate_cart_item(request.width, request.height, request.quantity)
        if errors:
            raise ValidationError("; ".join(errors))

        artwork = await self.catalog_repo.get_artwork(request.art_id)
        if artwork is None:
            raise NotFoundError("Artwork not found")

        paper_type = None
        if request.paper_type_id:
            paper_type = await self.catalog_repo.get_paper_type(request.paper_type_id)
            if paper_type is None:
                raise NotFoundError("Paper type not found")

        cart = await self.get_or_create_cart(user)
        existing = await self.cart_repo.find_matching_item(
            cart.id,
            artwork.id,
            paper_type.id if paper_type else None,
            request.width,
            request.height
        )

        if existing is not None:
            quantity = existing.quantity + request.quantity
            if quantity > pricing.MAX_LINE_QUANTITY:
                raise ValidationError(f"Quantity must not exceed {pricing.MAX_LINE_QUANTITY}")
            await self.cart_repo.update_item_quantity(existing.id, quantity)
            logger.info("cart_item_merged", cart_id=cart.document_id, item_id=existing.document_id, quantity=quantity)
        else:
            unit_price = pricing.artwork_price(
                artwork.base_price_per_cm_square or 0.5,
                request.width,
                request.height,
                pricing.paper_multiplier(paper_type)
            )
            await self.cart_repo.create_item(
                cart_id=cart.id,
                art_id=artwork.id,
                paper_type_id=paper_type.id if paper_type else None,
                arttitle=artwork.artname,
                artistname=artwork.artist_name,
                width=request.width,
                height=request.height,
                price=unit_price,
                quantity=request.quantity
            )

        cart, items = await self.refresh_total(cart)
        return self.cart_view(cart, items)

    async def _owned_item(self, user: CurrentUser, item_document_id: str) -> Tuple[CartDB, CartItemDB]:
        cart = await self.cart_repo.get_active_cart(user.id)
        item = await self.cart_repo.get_item(item_document_id)
        if cart is None or item is None or item.cart_id != cart.id:
            raise NotFoundError("Cart item not found")
        return cart, item

    async def update_item_quantity(
        self,
        user: CurrentUser,
        item_document_id: str,
        quantity: int
    ) -> Dict[str, Any]:
        """Set the quantity of one of the user's cart lines."""
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        if quantity > pricing.MAX_LINE_QUANTITY:
            raise ValidationError(f"Quantity must not exceed {pricing.MAX_LINE_QUANTITY}")

        cart, item = await self._owned_item(user, item_document_id)
        await self.cart_repo.update_item_quantity(item.id, quantity)
        cart, items = await self.refresh_total(cart)
        return self.cart_view(cart, items)

    async def remove_item(self, user: CurrentUser, item_document_id: str) -> Dict[str, Any]:
        cart, item = await self._owned_item(user, item_document_id)
        await self.cart_repo.delete_item(item.id)
        logger.info("cart_item_removed", cart_id=cart.document_id, item_id=item_document_id)
        cart, items = await self.refresh_total(cart)
        return self.cart_view(cart, items)

    async def clear_cart(self, user: CurrentUser) -> Dict[str, Any]:
        cart = await self.get_or_create_cart(user)
        await self.cart_repo.clear_items(cart.id)
        cart, items = await self.refresh_total(cart.model_copy(update={"total_price": 0.0}))
        return self.cart_view(cart, items)

    # ========================================================================
    # Lookups used by other services
    # ========================================================================

    async def get_owned_cart(self, user: CurrentUser, cart_document_id: str) -> CartDB:
        """
        Load a cart the user may act on.

        Admins may read any cart.

        Raises:
            NotFoundError: Unknown cart
            PermissionDeniedError: Cart belongs to someone else
        """
        cart = await self.cart_repo.get_cart(cart_document_id)
        if cart is None:
            raise NotFoundError("Cart not found")
        if cart.user_id != user.id and not user.has_role(self.settings.admin_role):
            logger.warning("cart_access_denied", cart_id=cart_document_id, user_id=user.id)
            raise PermissionDeniedError("You can only access your own cart")
        return cart

    async def get_checkout_cart(
        self,
        user: CurrentUser,
        cart_document_id: str
    ) -> Tuple[CartDB, List[CartItemDB]]:
        """
        Load the user's own active, non-empty cart with its lines.

        Raises:
            NotFoundError: Unknown cart
            PermissionDeniedError: Cart belongs to someone else
            ValidationError: Cart already checked out, or empty
        """
        cart = await self.cart_repo.get_cart(cart_document_id)
        if cart is None:
            raise NotFoundError("Cart not found")
        if cart.user_id != user.id:
            raise PermissionDeniedError("You can only check out your own cart")
        if cart.status == CartStatus.CONVERTED.value:
            raise ValidationError("Cart has already been checked out")

        cart, items = await self.refresh_total(cart)
        if not items:
            raise ValidationError("Cart is empty")
        return cart, items

    async def cart_items(self, user: CurrentUser, cart_document_id: str) -> Dict[str, Any]:
        """Lines of a cart with a summary."""
        cart = await self.get_owned_cart(user, cart_document_id)
        items = await self.cart_repo.list_items(cart.id)
        return {
            "cart": cart.document_id,
            "items": [cart_item_view(item) for item in items],
            "summary": items_summary(items),
        }

    async def calculate_pricing(self, request: CartPricingRequest) -> Dict[str, Any]:
        """Quote a print line without touching the cart."""
        errors = pricing.validate_cart_item(request.width, request.height, request.quantity)
        if errors:
            raise ValidationError("; ".join(errors))

        artwork = await self.catalog_repo.get_artwork(request.artwork_id)
        if artwork is None:
            raise NotFoundError("Artwork not found")

        paper_type = None
        if request.paper_type_id:
            paper_type = await self.catalog_repo.get_paper_type(request.paper_type_id)
            if paper_type is None:
                raise NotFoundError("Paper type not found")

        breakdown = pricing.price_breakdown(artwork, request.width, request.height, paper_type)
        unit_price = breakdown["finalPrice"]
        total = pricing.line_total(unit_price, request.quantity)
        savings = pricing.bulk_savings(unit_price, request.quantity)
        return {
            "unitPrice": unit_price,
            "quantity": request.quantity,
            "subtotal": total,
            "savings": savings,
            "totalPrice": pricing.round_money(total - savings),
            "isCustomSize": pricing.is_custom_size(request.width, request.height),
            "breakdown": breakdown,
        }

    # ========================================================================
    # Checkout
    # ========================================================================

    async def checkout(
        self,
        user: CurrentUser,
        cart_document_id: str,
        shipping_cost: float = 0.0,
        address: Optional[Dict[str, Any]] = None,
        payment_intent_id: Optional[str] = None
    ) -> OrderDB:
        """
        Convert the user's cart into a pending order.

        Args:
            user: Cart owner
            cart_document_id: Cart to check out
            shipping_cost: Shipping added to the item total
            address: Shipping address
            payment_intent_id: Provider payment id, when paid up front

        Returns:
            Created order
        """
        if shipping_cost < 0:
            raise ValidationError("Shipping cost cannot be negative")

        cart, items = await self.get_checkout_cart(user, cart_document_id)
        total = pricing.round_money(pricing.cart_total(items) + shipping_cost)

        order = await self.order_repo.create_order_from_cart(
            cart=cart,
            items=items,
            user_email=user.email,
            shipping_cost=shipping_cost,
            total_price=total,
            address=address,
            stripe_payment_id=payment_intent_id
        )
        get_metrics().orders_created.inc()
        logger.info(
            "cart_checked_out",
            cart_id=cart.document_id,
            order_id=order.document_id,
            user_id=user.id,
            total_price=total
        )
        return order
