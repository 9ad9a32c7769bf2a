"""
Unit tests for the cart service.

Tests cover:
- One active cart per user, created on first use
- Adding prints, merging identical lines and the quantity ceiling
- Quantity changes, removal and clearing restricted to the owner
- Total correction when the stored total drifts
- Checkout into an order
"""

import pytest

from storefront.src.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from storefront.src.models.cart import AddCartItemRequest, CartPricingRequest, CartStatus


def _add(artwork, paper_type=None, quantity=1, width=30, height=40) -> AddCartItemRequest:
    return AddCartItemRequest(
        art_id=artwork.document_id,
        paper_type_id=paper_type.document_id if paper_type else None,
        quantity=quantity,
        width=width,
        height=height,
    )


# ============================================================================
# CART LIFECYCLE
# ============================================================================


class TestCartLifecycle:
    """Tests for cart creation and total maintenance."""

    @pytest.mark.asyncio
    async def test_first_access_creates_empty_cart(self, cart_service, cart_repo, customer):
        """Test a user without a cart gets an empty one."""
        cart = await cart_service.get_cart(customer)

        assert cart["user_id"] == customer.id
        assert cart["items"] == []
        assert cart["total_price"] == 0.0
        assert len(cart_repo.carts) == 1

    @pytest.mark.asyncio
    async def test_same_cart_is_returned(self, cart_service, cart_repo, customer):
        """Test repeated access does not create a second cart."""
        first = await cart_service.get_cart(customer)
        second = await cart_service.get_cart(customer)

        assert first["document_id"] == second["document_id"]
        assert len(cart_repo.carts) == 1

    @pytest.mark.asyncio
    async def test_drifted_total_is_corrected(self, cart_service, cart_repo, customer, artwork):
        """Test the stored total is rewritten to the sum of the lines."""
        await cart_service.add_item(customer, _add(artwork))
        cart = await cart_repo.get_active_cart(customer.id)
        cart_repo.carts[cart.id] = cart.model_copy(update={"total_price": 999.0})

        view = await cart_service.get_cart(customer)

        assert view["total_price"] == 60.0
        assert cart_repo.carts[cart.id].total_price == 60.0


# ============================================================================
# ADDING ITEMS
# ============================================================================


class TestAddItem:
    """Tests for adding prints to the cart."""

    @pytest.mark.asyncio
    async def test_add_item_prices_with_paper(self, cart_service, customer, artwork, paper_type):
        """Test unit price uses base price, area and paper multiplier."""
        cart = await cart_service.add_item(customer, _add(artwork, paper_type, quantity=2))

        assert cart["itemCount"] == 1
        item = cart["items"][0]
        assert item["price"] == 90.0
        assert item["quantity"] == 2
        assert item["total_price"] == 180.0
        assert item["arttitle"] == "The Great Wave"
        assert item["artistname"] == "Katsushika Hokusai"
        assert item["dimensions"] == "30x40cm"
        assert item["isCustomSize"] is False
        assert cart["total_price"] == 180.0

    @pytest.mark.asyncio
    async def test_identical_print_merges_into_one_line(self, cart_service, customer, artwork):
        """Test adding the same configuration increases the quantity."""
        await cart_service.add_item(customer, _add(artwork, quantity=2))
        cart = await cart_service.add_item(customer, _add(artwork, quantity=3))

        assert cart["itemCount"] == 1
        assert cart["items"][0]["quantity"] == 5
        assert cart["totalQuantity"] == 5
        assert cart["total_price"] == 300.0

    @pytest.mark.asyncio
    async def test_different_size_creates_new_line(self, cart_service, customer, artwork):
        """Test another size is a separate line."""
        await cart_service.add_item(customer, _add(artwork))
        cart = await cart_service.add_item(customer, _add(artwork, width=50, height=70))

        assert cart["itemCount"] == 2
        assert cart["total_price"] == 235.0

    @pytest.mark.asyncio
    async def test_merge_cannot_exceed_quantity_ceiling(self, cart_service, customer, artwork):
        """Test merged quantity above 50 is rejected."""
        await cart_service.add_item(customer, _add(artwork, quantity=30))

        with pytest.raises(ValidationError) as exc_info:
            await cart_service.add_item(customer, _add(artwork, quantity=21))

        assert "50" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_too_small_print_is_rejected(self, cart_service, customer, artwork):
        """Test print area under 100 cm² is rejected."""
        with pytest.raises(ValidationError):
            await cart_service.add_item(customer, _add(artwork, width=5, height=5))

    @pytest.mark.asyncio
    async def test_unknown_artwork(self, cart_service, customer, artwork):
        """Test unknown artwork raises NotFoundError."""
        request = AddCartItemRequest(art_id="missing")

        with pytest.raises(NotFoundError):
            await cart_service.add_item(customer, request)

    @pytest.mark.asyncio
    async def test_unknown_paper_type(self, cart_service, customer, artwork):
        """Test unknown paper type raises NotFoundError."""
        request = AddCartItemRequest(art_id=artwork.document_id, paper_type_id="missing")

        with pytest.raises(NotFoundError):
            await cart_service.add_item(customer, request)

    def test_request_accepts_storefront_field_names(self):
        """Test camelCase aliases used by the storefront client."""
        request = AddCartItemRequest.model_validate(
            {"artId": "a1", "paperTypeId": "p1", "customWidth": 40, "customHeight": 50}
        )

        assert request.art_id == "a1"
        assert request.paper_type_id == "p1"
        assert (request.width, request.height, request.quantity) == (40, 50, 1)

    def test_request_defaults_to_standard_size(self):
        """Test width and height default to 30x40."""
        request = AddCartItemRequest.model_validate({"artId": "a1"})

        assert (request.width, request.height) == (30.0, 40.0)


# ============================================================================
# EDITING ITEMS
# ============================================================================


class TestEditItems:
    """Tests for quantity updates, removal and clearing."""

    @pytest.mark.asyncio
    async def test_update_quantity(self, cart_service, customer, artwork):
        """Test quantity change recomputes line and cart totals."""
        cart = await cart_service.add_item(customer, _add(artwork))
        item_id = cart["items"][0]["document_id"]

        cart = await cart_service.update_item_quantity(customer, item_id, 4)

        assert cart["items"][0]["quantity"] == 4
        assert cart["items"][0]["total_price"] == 240.0
        assert cart["items"][0]["savings"] == 12.0
        assert cart["total_price"] == 240.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -1, 51])
    async def test_update_quantity_out_of_range(self, cart_service, customer, artwork, quantity):
        """Test quantities outside 1..50 are rejected."""
        cart = await cart_service.add_item(customer, _add(artwork))

        with pytest.raises(ValidationError):
            await cart_service.update_item_quantity(customer, cart["items"][0]["document_id"], quantity)

    @pytest.mark.asyncio
    async def test_other_users_item_is_not_found(self, cart_service, customer, other_customer, artwork):
        """Test a line in someone else's cart cannot be changed."""
        cart = await cart_service.add_item(customer, _add(artwork))
        await cart_service.get_cart(other_customer)

        with pytest.raises(NotFoundError):
            await cart_service.update_item_quantity(other_customer, cart["items"][0]["document_id"], 2)
        with pytest.raises(NotFoundError):
            await cart_service.remove_item(other_customer, cart["items"][0]["document_id"])

    @pytest.mark.asyncio
    async def test_remove_item(self, cart_service, customer, artwork):
        """Test removing the only line empties the cart."""
        cart = await cart_service.add_item(customer, _add(artwork))

        cart = await cart_service.remove_item(customer, cart["items"][0]["document_id"])

        assert cart["items"] == []
        assert cart["total_price"] == 0.0

    @pytest.mark.asyncio
    async def test_clear_cart(self, cart_service, customer, artwork, paper_type):
        """Test clearing removes every line and zeroes the total."""
        await cart_service.add_item(customer, _add(artwork))
        await cart_service.add_item(customer, _add(artwork, paper_type))

        cart = await cart_service.clear_cart(customer)

        assert cart["itemCount"] == 0
        assert cart["total_price"] == 0.0


# ============================================================================
# LOOKUPS AND QUOTES
# ============================================================================


class TestLookups:
    """Tests for cart access checks and quotes."""

    @pytest.mark.asyncio
    async def test_owner_can_list_items(self, cart_service, customer, artwork):
        """Test line listing includes a summary."""
        cart = await cart_service.add_item(customer, _add(artwork, quantity=2))

        result = await cart_service.cart_items(customer, cart["document_id"])

        assert result["cart"] == cart["document_id"]
        assert result["summary"] == {
            "totalItems": 1,
            "totalQuantity": 2,
            "totalValue": 120.0,
            "averageItemValue": 120.0,
        }

    @pytest.mark.asyncio
    async def test_other_user_is_denied(self, cart_service, customer, other_customer, artwork):
        """Test reading someone else's cart is forbidden."""
        cart = await cart_service.add_item(customer, _add(artwork))

        with pytest.raises(PermissionDeniedError):
            await cart_service.cart_items(other_customer, cart["document_id"])

    @pytest.mark.asyncio
    async def test_admin_can_read_any_cart(self, cart_service, customer, admin, artwork):
        """Test the admin role bypasses the ownership check."""
        cart = await cart_service.add_item(customer, _add(artwork))

        result = await cart_service.cart_items(admin, cart["document_id"])

        assert len(result["items"]) == 1

    @pytest.mark.asyncio
    async def test_calculate_pricing_with_bulk_savings(self, cart_service, artwork, paper_type):
        """Test quote of five prints applies the 10% bulk discount."""
        request = CartPricingRequest(
            artwork_id=artwork.document_id,
            paper_type_id=paper_type.document_id,
            width=30,
            height=40,
            quantity=5,
        )

        quote = await cart_service.calculate_pricing(request)

        assert quote["unitPrice"] == 90.0
        assert quote["subtotal"] == 450.0
        assert quote["savings"] == 45.0
        assert quote["totalPrice"] == 405.0
        assert quote["breakdown"]["paperTypeMultiplier"] == 1.5


# ============================================================================
# CHECKOUT
# ============================================================================


class TestCheckout:
    """Tests for converting a cart into an order."""

    @pytest.mark.asyncio
    async def test_checkout_creates_order_and_converts_cart(
        self, cart_service, cart_repo, order_repo, customer, artwork
    ):
        """Test order total includes shipping and the cart is consumed."""
        cart = await cart_service.add_item(customer, _add(artwork, quantity=2))

        order = await cart_service.checkout(
            customer, cart["document_id"], shipping_cost=9.9, address={"city": "Lyon"}
        )

        assert order.total_price == 129.9
        assert order.shipping_cost == 9.9
        assert order.user_email == customer.email
        assert order.address == {"city": "Lyon"}
        assert len(await order_repo.list_items(order.id)) == 1
        stored = await cart_repo.get_cart(cart["document_id"])
        assert stored.status == CartStatus.CONVERTED.value
        assert await cart_repo.list_items(stored.id) == []

    @pytest.mark.asyncio
    async def test_checkout_twice_is_rejected(self, cart_service, customer, artwork):
        """Test a converted cart cannot be checked out again."""
        cart = await cart_service.add_item(customer, _add(artwork))
        await cart_service.checkout(customer, cart["document_id"])

        with pytest.raises(ValidationError) as exc_info:
            await cart_service.checkout(customer, cart["document_id"])

        assert "already" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_new_cart_after_checkout(self, cart_service, customer, artwork):
        """Test the next access after checkout starts a fresh cart."""
        cart = await cart_service.add_item(customer, _add(artwork))
        await cart_service.checkout(customer, cart["document_id"])

        fresh = await cart_service.get_cart(customer)

        assert fresh["document_id"] != cart["document_id"]
        assert fresh["items"] == []

    @pytest.mark.asyncio
    async def test_empty_cart_cannot_be_checked_out(self, cart_service, customer):
        """Test checkout requires at least one line."""
        cart = await cart_service.get_cart(customer)

        with pytest.raises(ValidationError) as exc_info:
            await cart_service.checkout(customer, cart["document_id"])

        assert exc_info.value.message == "Cart is empty"

    @pytest.mark.asyncio
    async def test_checkout_of_other_users_cart(self, cart_service, customer, other_customer, artwork):
        """Test only the owner can check out."""
        cart = await cart_service.add_item(customer, _add(artwork))

        with pytest.raises(PermissionDeniedError):
            await cart_service.checkout(other_customer, cart["document_id"])

    @pytest.mark.asyncio
    async def test_negative_shipping_is_rejected(self, cart_service, customer, artwork):
        """Test shipping cost must not be negative."""
        cart = await cart_service.add_item(customer, _add(artwork))

        with pytest.raises(ValidationError):
            await cart_service.checkout(customer, cart["document_id"], shipping_cost=-1)
