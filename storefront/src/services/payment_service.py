"""
Payment service.

Orchestrates Stripe payment intents, saved cards and refunds around carts
and orders. Amounts are handled in major units here and converted to
minor units for the gateway.
"""

from typing import Any, Dict, Optional

import stripe
import structlog

from storefront.src.config import get_settings
from storefront.src.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    ServiceUnavailableError,
    ValidationError,
)
from storefront.src.models.auth import CurrentUser
from storefront.src.models.order import OrderStatus
from storefront.src.services import pricing
from storefront.src.services.cart_service import CartService
from storefront.src.services.order_service import OrderService, order_view
from storefront.src.services.payment_gateway import StripeGateway

logger = structlog.get_logger(__name__)

PAYMENT_SOURCE = "storefront_cart"


class PaymentService:
    """Service for payment operations."""

    def __init__(
        self,
        gateway: Optional[StripeGateway],
        cart_service: CartService,
        order_service: OrderService
    ):
        """
        Initialize payment service.

        Args:
            gateway: Stripe gateway, None when payments are not configured
            cart_service: Cart service
            order_service: Order service
        """
        self._gateway = gateway
        self.cart_service = cart_service
        self.order_service = order_service
        self.settings = get_settings()

    @property
    def gateway(self) -> StripeGateway:
        if self._gateway is None:
            raise ServiceUnavailableError("Payment service is not available")
        return self._gateway

    def _is_admin(self, user: CurrentUser) -> bool:
        return user.has_role(self.settings.admin_role)

    async def _customer_id(self, user: CurrentUser) -> Optional[str]:
        if not user.email:
            return None
        customer = await self.gateway.find_or_create_customer(
            email=user.email,
            name=user.display_name,
            metadata={"userId": user.id}
        )
        return customer["id"]

    async def _optional_customer_id(self, user: CurrentUser) -> Optional[str]:
        """Customer for the user, or None when the provider lookup fails."""
        try:
            return await self._customer_id(user)
        except stripe.StripeError as e:
            logger.warning(
                "stripe_customer_lookup_failed",
                user_id=user.id,
                error_type=type(e).__name__,
                error=str(e)
            )
            return None

    # ========================================================================
    # Cart checkout
    # ========================================================================

    async def create_payment_intent_for_cart(
        self,
        user: CurrentUser,
        cart_document_id: str,
        shipping_cost: float = 0.0
    ) -> Dict[str, Any]:
        """
        Create a payment intent covering the cart total plus shipping.

        Raises:
            ServiceUnavailableError: Payments not configured
            ValidationError: Empty cart or amount below the provider minimum
        """
        gateway = self.gateway
        cart, items = await self.cart_service.get_checkout_cart(user, cart_document_id)
        amount = pricing.to_minor_units(pricing.cart_total(items) + shipping_cost)
        if amount < self.settings.stripe_minimum_amount:
            raise ValidationError(
                f"Amount must be at least {pricing.format_money(pricing.from_minor_units(self.settings.stripe_minimum_amount))}"
            )

        intent = await gateway.create_payment_intent(
            amount=amount,
            currency=self.settings.stripe_currency,
            customer_id=await self._optional_customer_id(user),
            metadata={
                "cartId": cart.document_id,
                "userId": user.id,
                "itemCount": str(len(items)),
                "source": PAYMENT_SOURCE,
            },
            description=f"Art prints order ({len(items)} items)"
        )
        logger.info(
            "cart_payment_intent_created",
            cart_id=cart.document_id,
            payment_intent_id=intent["id"],
            amount=amount
        )
        return {
            "clientSecret": intent["client_secret"],
            "paymentIntentId": intent["id"],
            "amount": amount,
            "currency": self.settings.stripe_currency,
        }

    async def confirm_cart_payment(
        self,
        user: CurrentUser,
        payment_intent_id: str,
        cart_document_id: str
    ) -> Dict[str, Any]:
        """
        Turn a cart into a paid order once its payment intent succeeded.

        Raises:
            ValidationError: Intent not succeeded or issued for another cart
        """
        intent = await self.gateway.retrieve_payment_intent(payment_intent_id)
        if intent["status"] != "succeeded":
            raise ValidationError(f"Payment not completed (status: {intent['status']})")

        metadata = intent.get("metadata") or {}
        if metadata.get("cartId") != cart_document_id or metadata.get("userId") != user.id:
            logger.warning(
                "payment_intent_mismatch",
                payment_intent_id=payment_intent_id,
                cart_id=cart_document_id,
                user_id=user.id
            )
            raise ValidationError("Payment intent does not match this cart")

        # Shipping is whatever the intent charged on top of the items.
        _, items = await self.cart_service.get_checkout_cart(user, cart_document_id)
        paid = pricing.from_minor_units(intent["amount"])
        shipping_cost = pricing.round_money(paid - pricing.cart_total(items))
        if shipping_cost < 0:
            raise ValidationError("Payment amount does not cover the cart total")

        order = await self.cart_service.checkout(
            user,
            cart_document_id,
            shipping_cost=shipping_cost,
            payment_intent_id=payment_intent_id
        )
        order = await self.order_service.set_status(
            order,
            OrderStatus.PAID,
            total_price=paid,
            stripe_payment_id=payment_intent_id
        )
        items = await self.order_service.order_repo.list_items(order.id)
        logger.info("cart_payment_confirmed", order_id=order.document_id, payment_intent_id=payment_intent_id)
        return order_view(order, items, user.display_name)

    # ========================================================================
    # Generic payment intents
    # ========================================================================

    async def create_payment_intent(
        self,
        user: CurrentUser,
        amount: float,
        currency: Optional[str] = None,
        order_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a payment intent for an arbitrary amount in major units."""
        gateway = self.gateway
        minor = pricing.to_minor_units(amount) if amount and amount > 0 else 0
        if minor <= 0 or minor > self.settings.stripe_max_amount:
            raise ValidationError("Invalid amount")

        metadata = {"user_id": user.id}
        if order_id:
            metadata["order_id"] = order_id
        intent = await gateway.create_payment_intent(
            amount=minor,
            currency=(currency or self.settings.stripe_currency).lower(),
            customer_id=await self._customer_id(user),
            metadata=metadata
        )
        return {
            "clientSecret": intent["client_secret"],
            "paymentIntentId": intent["id"],
            "amount": minor,
            "currency": intent.get("currency", currency or self.settings.stripe_currency),
        }

    async def confirm_payment(self, payment_intent_id: str, payment_method_id: Optional[str] = None) -> Dict[str, Any]:
        intent = await self.gateway.confirm_payment_intent(payment_intent_id, payment_method_id)
        return {
            "paymentIntentId": intent["id"],
            "status": intent["status"],
            "amount": intent.get("amount"),
        }

    async def get_payment_intent(self, user: CurrentUser, payment_intent_id: str) -> Dict[str, Any]:
        """
        Read a payment intent the caller created.

        Raises:
            PermissionDeniedError: Intent belongs to someone else
        """
        intent = await self.gateway.retrieve_payment_intent(payment_intent_id)
        metadata = intent.get("metadata") or {}
        owner = metadata.get("user_id") or metadata.get("userId")
        if owner != user.id and not self._is_admin(user):
            raise PermissionDeniedError("You can only access your own payments")
        return {
            "id": intent["id"],
            "status": intent["status"],
            "amount": intent.get("amount"),
            "currency": intent.get("currency"),
            "metadata": dict(metadata),
        }

    async def refund_order(self, order_document_id: str, amount: Optional[float] = None) -> Dict[str, Any]:
        """
        Refund a paid order through the provider.

        Raises:
            NotFoundError: Unknown order
            ValidationError: Order not paid through the provider
        """
        gateway = self.gateway
        order = await self.order_service.order_repo.get_order(order_document_id)
        if order is None:
            raise NotFoundError("Order not found")
        if not order.stripe_payment_id:
            raise ValidationError("Order has no payment to refund")
        if order.status != OrderStatus.PAID.value:
            raise ValidationError(f"Only paid orders can be refunded (status: {order.status})")

        minor = pricing.to_minor_units(amount) if amount is not None else None
        refund = await gateway.refund_payment_intent(order.stripe_payment_id, minor)
        order = await self.order_service.set_status(order, OrderStatus.REFUNDED)
        logger.info("order_refunded", order_id=order.document_id, refund_id=refund["id"])
        return {
            "refundId": refund["id"],
            "status": refund["status"],
            "amount": refund.get("amount"),
            "order": order_view(order),
        }

    # ========================================================================
    # Saved cards
    # ========================================================================

    async def create_setup_intent(self, user: CurrentUser) -> Dict[str, Any]:
        """
        Start saving a card for off-session use.

        Cards saved earlier are detached so the customer keeps one.
        """
        gateway = self.gateway
        customer_id = await self._customer_id(user)
        if customer_id is None:
            raise ValidationError("An email address is required to save a payment method")

        for method in await gateway.list_card_payment_methods(customer_id):
            await gateway.detach_payment_method(method["id"])

        intent = await gateway.create_setup_intent(customer_id)
        return {"client_secret": intent["client_secret"], "customerId": customer_id}

    async def get_payment_methods(self, user: CurrentUser) -> Dict[str, Any]:
        gateway = self.gateway
        customer_id = await self._customer_id(user)
        if customer_id is None:
            return {"payment_methods": [], "default_payment_method": None}

        methods = []
        for method in await gateway.list_card_payment_methods(customer_id):
            card = method.get("card") or {}
            methods.append({
                "id": method["id"],
                "type": method.get("type", "card"),
                "brand": card.get("brand"),
                "last4": card.get("last4"),
                "exp_month": card.get("exp_month"),
                "exp_year": card.get("exp_year"),
            })
        return {
            "payment_methods": methods,
            "default_payment_method": await gateway.default_payment_method(customer_id),
        }
