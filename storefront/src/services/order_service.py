"""
Order service.

Checkout from a cart, order listings with display values, staff updates,
statistics, and the fulfillment pipeline for ordered prints.
"""

import structlog
from typing import Any, Dict, List, Optional, Tuple

from shared.metrics import get_metrics
from storefront.src.config import get_settings
from storefront.src.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from storefront.src.models.auth import CurrentUser
from storefront.src.models.common import PaginationMeta
from storefront.src.models.order import (
    PIPELINE_STATUSES,
    FulfillmentStatus,
    FulfillmentUpdateRequest,
    OrderDB,
    OrderedItemDB,
    OrderStatus,
    UpdateOrderRequest,
)
from storefront.src.repositories.order_repo import OrderRepository
from storefront.src.services import pricing
from storefront.src.services.cart_service import CartService

logger = structlog.get_logger(__name__)


def ordered_item_view(item: OrderedItemDB) -> Dict[str, Any]:
    data = item.model_dump(mode="json")
    data["lineTotal"] = pricing.line_total(item.price, item.quantity)
    data["dimensions"] = pricing.format_dimensions(item.width, item.height)
    return data


def order_view(
    order: OrderDB,
    items: Optional[List[OrderedItemDB]] = None,
    customer_name: Optional[str] = None
) -> Dict[str, Any]:
    """Serialize an order with display values and, optionally, its items."""
    data = order.model_dump(mode="json")
    data["formattedTotal"] = pricing.format_money(order.total_price)
    data["daysSinceOrder"] = pricing.days_since(order.created_at)
    data["customerName"] = customer_name or order.user_email or "Unknown"
    if items is not None:
        data["itemCount"] = len(items)
        data["totalItems"] = sum(item.quantity for item in items)
        data["itemsSummary"] = [ordered_item_view(item) for item in items]
    return data


class OrderService:
    """Service for order and fulfillment operations."""

    def __init__(self, order_repo: OrderRepository, cart_service: CartService):
        """
        Initialize order service.

        Args:
            order_repo: Order repository
            cart_service: Cart service used for checkout
        """
        self.order_repo = order_repo
        self.cart_service = cart_service
        self.settings = get_settings()

    def _is_admin(self, user: CurrentUser) -> bool:
        return user.has_role(self.settings.admin_role)

    # ========================================================================
    # Orders
    # ========================================================================

    async def create_from_cart(
        self,
        user: CurrentUser,
        cart_document_id: str,
        shipping_cost: float = 0.0,
        address: Optional[Dict[str, Any]] = None,
        payment_intent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Check the user's cart out into a pending order."""
        order = await self.cart_service.checkout(
            user,
            cart_document_id,
            shipping_cost=shipping_cost,
            address=address,
            payment_intent_id=payment_intent_id
        )
        items = await self.order_repo.list_items(order.id)
        return order_view(order, items, user.display_name)

    async def get_order(self, user: CurrentUser, document_id: str) -> OrderDB:
        """
        Load an order the user may see.

        Raises:
            NotFoundError: Unknown order
            PermissionDeniedError: Order belongs to someone else
        """
        order = await self.order_repo.get_order(document_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.user_id != user.id and not self._is_admin(user):
            logger.warning("order_access_denied", order_id=document_id, user_id=user.id)
            raise PermissionDeniedError("You can only access your own orders")
        return order

    async def get_order_view(self, user: CurrentUser, document_id: str) -> Dict[str, Any]:
        order = await self.get_order(user, document_id)
        items = await self.order_repo.list_items(order.id)
        return order_view(order, items)

    async def list_orders(
        self,
        user: CurrentUser,
        status: Optional[str] = None,
        user_id: Optional[str] = None,
        include_items: bool = False,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Tuple[List[Dict[str, Any]], PaginationMeta]:
        """
        List orders. Customers see their own; admins see all or filter by user.
        """
        if status is not None and status not in OrderStatus.values():
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(OrderStatus.values())}")

        owner = user_id if self._is_admin(user) else user.id
        page = max(page, 1)
        size = min(page_size or self.settings.pagination_default_limit, self.settings.pagination_max_limit)
        orders, total = await self.order_repo.list_orders(
            user_id=owner,
            status=status,
            limit=size,
            offset=(page - 1) * size
        )

        views = []
        for order in orders:
            items = await self.order_repo.list_items(order.id) if include_items else None
            views.append(order_view(order, items))
        return views, PaginationMeta.build(page, size, total)

    async def update_order(self, document_id: str, request: UpdateOrderRequest) -> Dict[str, Any]:
        """
        Staff update of status, shipping cost or notes.

        Changing the shipping cost adjusts the total by the difference.
        """
        order = await self.order_repo.get_order(document_id)
        if order is None:
            raise NotFoundError("Order not found")

        fields: Dict[str, Any] = {}
        if request.status is not None:
            if request.status not in OrderStatus.values():
                raise ValidationError(f"Invalid status. Must be one of: {', '.join(OrderStatus.values())}")
            fields["status"] = request.status
        if request.shipping_cost is not None:
            fields["shipping_cost"] = request.shipping_cost
            fields["total_price"] = pricing.round_money(
                order.total_price - order.shipping_cost + request.shipping_cost
            )
        if request.notes is not None:
            fields["notes"] = request.notes
        if not fields:
            raise ValidationError("Nothing to update")

        updated = await self.order_repo.update_order(order.id, **fields)
        if "status" in fields and fields["status"] != order.status:
            get_metrics().order_status_changes.labels(status=fields["status"]).inc()
        return order_view(updated)

    async def delete_order(self, document_id: str) -> Dict[str, Any]:
        order = await self.order_repo.get_order(document_id)
        if order is None:
            raise NotFoundError("Order not found")
        await self.order_repo.delete_order(order.id)
        logger.info("order_deleted", order_id=document_id)
        return order_view(order)

    async def set_status(self, order: OrderDB, status: OrderStatus, **fields: Any) -> OrderDB:
        """Persist a status transition together with any payment fields."""
        updated = await self.order_repo.update_order(order.id, status=status.value, **fields)
        if updated is None:
            raise NotFoundError("Order not found")
        get_metrics().order_status_changes.labels(status=status.value).inc()
        return updated

    async def statistics(self) -> Dict[str, Any]:
        stats = await self.order_repo.order_statistics()
        total_orders = stats["total_orders"]
        total_revenue = pricing.round_money(stats["total_revenue"])
        return {
            "totalOrders": total_orders,
            "totalRevenue": total_revenue,
            "averageOrderValue": pricing.round_money(total_revenue / total_orders) if total_orders else 0.0,
            "statusBreakdown": stats["status_breakdown"],
        }

    # ========================================================================
    # Ordered items and fulfillment
    # ========================================================================

    async def items_by_order(self, user: CurrentUser, order_document_id: str) -> Dict[str, Any]:
        order = await self.get_order(user, order_document_id)
        items = await self.order_repo.list_items(order.id)
        return {
            "order": order.document_id,
            "items": [ordered_item_view(item) for item in items],
            "itemCount": len(items),
            "totalQuantity": sum(item.quantity for item in items),
            "totalValue": pricing.cart_total(items),
        }

    async def update_fulfillment(self, item_document_id: str, request: FulfillmentUpdateRequest) -> Dict[str, Any]:
        """
        Move an ordered print to a new fulfillment status.

        Raises:
            ValidationError: Unknown status
            NotFoundError: Unknown item
        """
        if request.fulfillment_status not in FulfillmentStatus.values():
            raise ValidationError(
                f"Invalid fulfillment status. Must be one of: {', '.join(FulfillmentStatus.values())}"
            )
        item = await self.order_repo.get_item(item_document_id)
        if item is None:
            raise NotFoundError("Ordered item not found")

        updated = await self.order_repo.update_fulfillment(
            item.id,
            request.fulfillment_status,
            tracking_number=request.tracking_number,
            notes=request.notes
        )
        return ordered_item_view(updated)

    async def fulfillment_pipeline(self) -> Dict[str, Any]:
        """Prints not yet shipped, grouped by production stage."""
        items = await self.order_repo.list_items_by_fulfillment(PIPELINE_STATUSES)
        stages: Dict[str, List[Dict[str, Any]]] = {status: [] for status in PIPELINE_STATUSES}
        for item in items:
            stages[item.fulfillment_status].append(ordered_item_view(item))
        return {
            "pipeline": stages,
            "counts": {status: len(entries) for status, entries in stages.items()},
            "total": len(items),
        }

    async def ordered_item_statistics(self) -> Dict[str, Any]:
        stats = await self.order_repo.ordered_item_statistics()
        return {
            "totalItems": stats["total_items"],
            "totalQuantity": stats["total_quantity"],
            "totalRevenue": pricing.round_money(stats["total_revenue"]),
            "fulfillmentBreakdown": stats["status_breakdown"],
        }
