"""
Unit tests for the order service.

Tests cover:
- Order creation from a cart and the order view
- Ownership checks and admin access
- Listing with status and user filters
- Staff updates, deletion and statistics
- Ordered item fulfillment and the production pipeline
"""

import pytest

from storefront.src.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from storefront.src.models.cart import AddCartItemRequest
from storefront.src.models.order import FulfillmentUpdateRequest, OrderStatus, UpdateOrderRequest


async def _place_order(cart_service, order_service, user, artwork, quantity=1, shipping_cost=5.0):
    cart = await cart_service.add_item(
        user, AddCartItemRequest(art_id=artwork.document_id, quantity=quantity)
    )
    return await order_service.create_from_cart(user, cart["document_id"], shipping_cost=shipping_cost)


# ============================================================================
# ORDERS
# ============================================================================


class TestCreateOrder:
    """Tests for checkout through the order service."""

    @pytest.mark.asyncio
    async def test_order_view(self, cart_service, order_service, customer, artwork):
        """Test the created order carries display values and its items."""
        order = await _place_order(cart_service, order_service, customer, artwork, quantity=2)

        assert order["status"] == OrderStatus.PENDING.value
        assert order["total_price"] == 125.0
        assert order["formattedTotal"] == "€125.00"
        assert order["customerName"] == "jane"
        assert order["daysSinceOrder"] == 0
        assert order["itemCount"] == 1
        assert order["totalItems"] == 2
        assert order["itemsSummary"][0]["lineTotal"] == 120.0
        assert order["itemsSummary"][0]["dimensions"] == "30x40cm"

    @pytest.mark.asyncio
    async def test_payment_intent_id_is_stored(self, cart_service, order_service, customer, artwork):
        """Test an up-front payment id is kept on the order."""
        cart = await cart_service.add_item(customer, AddCartItemRequest(art_id=artwork.document_id))

        order = await order_service.create_from_cart(
            customer, cart["document_id"], payment_intent_id="pi_123"
        )

        assert order["stripe_payment_id"] == "pi_123"


class TestOrderAccess:
    """Tests for reading orders."""

    @pytest.mark.asyncio
    async def test_owner_reads_order(self, cart_service, order_service, customer, artwork):
        order = await _place_order(cart_service, order_service, customer, artwork)

        view = await order_service.get_order_view(customer, order["document_id"])

        assert view["document_id"] == order["document_id"]
        assert view["itemCount"] == 1

    @pytest.mark.asyncio
    async def test_other_user_is_denied(self, cart_service, order_service, customer, other_customer, artwork):
        """Test customers cannot read each other's orders."""
        order = await _place_order(cart_service, order_service, customer, artwork)

        with pytest.raises(PermissionDeniedError):
            await order_service.get_order(other_customer, order["document_id"])

    @pytest.mark.asyncio
    async def test_admin_reads_any_order(self, cart_service, order_service, customer, admin, artwork):
        order = await _place_order(cart_service, order_service, customer, artwork)

        fetched = await order_service.get_order(admin, order["document_id"])

        assert fetched.user_id == customer.id

    @pytest.mark.asyncio
    async def test_unknown_order(self, order_service, customer):
        with pytest.raises(NotFoundError):
            await order_service.get_order(customer, "missing")


class TestListOrders:
    """Tests for order listings."""

    @pytest.mark.asyncio
    async def test_customer_sees_own_orders_only(
        self, cart_service, order_service, customer, other_customer, artwork
    ):
        """Test the user filter cannot be widened by a customer."""
        await _place_order(cart_service, order_service, customer, artwork)
        await _place_order(cart_service, order_service, other_customer, artwork)

        orders, pagination = await order_service.list_orders(customer, user_id=other_customer.id)

        assert [o["user_id"] for o in orders] == [customer.id]
        assert pagination.total == 1

    @pytest.mark.asyncio
    async def test_admin_sees_all_or_filters(
        self, cart_service, order_service, customer, other_customer, admin, artwork
    ):
        """Test admins list every order or one user's orders."""
        await _place_order(cart_service, order_service, customer, artwork)
        await _place_order(cart_service, order_service, other_customer, artwork)

        everything, _ = await order_service.list_orders(admin)
        filtered, _ = await order_service.list_orders(admin, user_id=other_customer.id)

        assert len(everything) == 2
        assert [o["user_id"] for o in filtered] == [other_customer.id]

    @pytest.mark.asyncio
    async def test_include_items(self, cart_service, order_service, customer, artwork):
        await _place_order(cart_service, order_service, customer, artwork)

        with_items, _ = await order_service.list_orders(customer, include_items=True)
        without_items, _ = await order_service.list_orders(customer)

        assert "itemsSummary" in with_items[0]
        assert "itemsSummary" not in without_items[0]

    @pytest.mark.asyncio
    async def test_pagination(self, cart_service, order_service, customer, artwork):
        """Test page size and page count."""
        for _ in range(3):
            await _place_order(cart_service, order_service, customer, artwork)

        orders, pagination = await order_service.list_orders(customer, page=2, page_size=2)

        assert len(orders) == 1
        assert pagination.page == 2
        assert pagination.pageSize == 2
        assert pagination.pageCount == 2
        assert pagination.total == 3

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, order_service, customer):
        with pytest.raises(ValidationError):
            await order_service.list_orders(customer, status="lost")


class TestUpdateOrder:
    """Tests for staff updates."""

    @pytest.mark.asyncio
    async def test_shipping_change_adjusts_total(self, cart_service, order_service, customer, artwork):
        """Test the total moves by the shipping difference."""
        order = await _place_order(cart_service, order_service, customer, artwork, shipping_cost=5.0)

        updated = await order_service.update_order(
            order["document_id"], UpdateOrderRequest(shipping_cost=12.5, notes="Express")
        )

        assert updated["shipping_cost"] == 12.5
        assert updated["total_price"] == 72.5
        assert updated["notes"] == "Express"

    @pytest.mark.asyncio
    async def test_status_update(self, cart_service, order_service, customer, artwork):
        order = await _place_order(cart_service, order_service, customer, artwork)

        updated = await order_service.update_order(order["document_id"], UpdateOrderRequest(status="shipped"))

        assert updated["status"] == "shipped"

    @pytest.mark.asyncio
    async def test_invalid_status(self, cart_service, order_service, customer, artwork):
        order = await _place_order(cart_service, order_service, customer, artwork)

        with pytest.raises(ValidationError):
            await order_service.update_order(order["document_id"], UpdateOrderRequest(status="lost"))

    @pytest.mark.asyncio
    async def test_empty_update(self, cart_service, order_service, customer, artwork):
        """Test an update without fields is rejected."""
        order = await _place_order(cart_service, order_service, customer, artwork)

        with pytest.raises(ValidationError) as exc_info:
            await order_service.update_order(order["document_id"], UpdateOrderRequest())

        assert exc_info.value.message == "Nothing to update"

    @pytest.mark.asyncio
    async def test_delete_order(self, cart_service, order_service, order_repo, customer, artwork):
        """Test deletion removes the order and its items."""
        order = await _place_order(cart_service, order_service, customer, artwork)

        await order_service.delete_order(order["document_id"])

        assert await order_repo.get_order(order["document_id"]) is None
        assert order_repo.items == {}
        with pytest.raises(NotFoundError):
            await order_service.delete_order(order["document_id"])

    @pytest.mark.asyncio
    async def test_statistics(self, cart_service, order_service, customer, other_customer, artwork):
        """Test totals, average and status breakdown."""
        await _place_order(cart_service, order_service, customer, artwork, shipping_cost=0)
        await _place_order(cart_service, order_service, other_customer, artwork, quantity=2, shipping_cost=0)

        stats = await order_service.statistics()

        assert stats["totalOrders"] == 2
        assert stats["totalRevenue"] == 180.0
        assert stats["averageOrderValue"] == 90.0
        assert stats["statusBreakdown"] == {"pending": 2}

    @pytest.mark.asyncio
    async def test_statistics_without_orders(self, order_service):
        stats = await order_service.statistics()

        assert stats["totalOrders"] == 0
        assert stats["averageOrderValue"] == 0.0


# ============================================================================
# FULFILLMENT
# ============================================================================


class TestFulfillment:
    """Tests for ordered item fulfillment."""

    @pytest.mark.asyncio
    async def test_update_fulfillment(self, cart_service, order_service, customer, artwork):
        """Test status, tracking number and notes are stored."""
        order = await _place_order(cart_service, order_service, customer, artwork)
        item_id = order["itemsSummary"][0]["document_id"]

        item = await order_service.update_fulfillment(
            item_id,
            FulfillmentUpdateRequest(fulfillment_status="shipped", tracking_number="TRK1", notes="Left at door")
        )

        assert item["fulfillment_status"] == "shipped"
        assert item["tracking_number"] == "TRK1"
        assert item["fulfillment_notes"] == "Left at door"

    @pytest.mark.asyncio
    async def test_invalid_fulfillment_status(self, cart_service, order_service, customer, artwork):
        order = await _place_order(cart_service, order_service, customer, artwork)

        with pytest.raises(ValidationError):
            await order_service.update_fulfillment(
                order["itemsSummary"][0]["document_id"],
                FulfillmentUpdateRequest(fulfillment_status="framed")
            )

    @pytest.mark.asyncio
    async def test_unknown_item(self, order_service):
        with pytest.raises(NotFoundError):
            await order_service.update_fulfillment(
                "missing", FulfillmentUpdateRequest(fulfillment_status="printed")
            )

    @pytest.mark.asyncio
    async def test_pipeline_excludes_shipped_items(
        self, cart_service, order_service, customer, other_customer, artwork
    ):
        """Test the pipeline groups pending, processing and printed prints."""
        first = await _place_order(cart_service, order_service, customer, artwork)
        second = await _place_order(cart_service, order_service, other_customer, artwork)
        await order_service.update_fulfillment(
            second["itemsSummary"][0]["document_id"],
            FulfillmentUpdateRequest(fulfillment_status="shipped")
        )

        pipeline = await order_service.fulfillment_pipeline()

        assert pipeline["total"] == 1
        assert pipeline["counts"] == {"pending": 1, "processing": 0, "printed": 0}
        assert pipeline["pipeline"]["pending"][0]["document_id"] == first["itemsSummary"][0]["document_id"]

    @pytest.mark.asyncio
    async def test_items_by_order(self, cart_service, order_service, customer, other_customer, artwork):
        """Test item listing follows the order ownership rule."""
        order = await _place_order(cart_service, order_service, customer, artwork, quantity=3)

        result = await order_service.items_by_order(customer, order["document_id"])

        assert result["totalQuantity"] == 3
        assert result["totalValue"] == 180.0
        with pytest.raises(PermissionDeniedError):
            await order_service.items_by_order(other_customer, order["document_id"])

    @pytest.mark.asyncio
    async def test_ordered_item_statistics(self, cart_service, order_service, customer, artwork):
        await _place_order(cart_service, order_service, customer, artwork, quantity=2)

        stats = await order_service.ordered_item_statistics()

        assert stats["totalItems"] == 1
        assert stats["totalQuantity"] == 2
        assert stats["totalRevenue"] == 120.0
        assert stats["fulfillmentBreakdown"] == {"pending": 1}
