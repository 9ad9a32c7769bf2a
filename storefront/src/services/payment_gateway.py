"""
Stripe payment gateway.

Thin async wrapper around the ``stripe`` SDK. SDK calls are blocking, so
each one runs in a worker thread. Every call carries the configured API
key and pinned API version; there is no module-level SDK state.

Stripe errors propagate unchanged. ``map_stripe_error`` converts them into
storefront errors at the HTTP boundary.
"""

import asyncio
import functools
from typing import Any, Dict, List, Optional, Sequence

import stripe
import structlog

from shared.metrics import get_metrics
from shared.tracing import trace_function
from storefront.src.exceptions import StorefrontError
from storefront.src.models.order import OrderDB, OrderedItemDB
from storefront.src.services import pricing

logger = structlog.get_logger(__name__)


def map_stripe_error(error: stripe.StripeError) -> StorefrontError:
    """
    Translate a Stripe SDK error into a storefront error.

    - card errors and invalid requests are the caller's fault (400)
    - rate limiting is passed through (429)
    - authentication problems are our configuration (500)
    - connectivity and API failures are upstream (502)
    """
    message = getattr(error, "user_message", None) or str(error) or "Payment provider error"

    if isinstance(error, stripe.CardError):
        return StorefrontError(message, error_code="CARD_ERROR", status_code=400)
    if isinstance(error, stripe.RateLimitError):
        return StorefrontError("Too many requests to payment provider", error_code="RATE_LIMIT_ERROR", status_code=429)
    if isinstance(error, stripe.InvalidRequestError):
        return StorefrontError(message, error_code="INVALID_REQUEST_ERROR", status_code=400)
    if isinstance(error, stripe.AuthenticationError):
        return StorefrontError(
            "Payment provider authentication failed",
            error_code="PAYMENT_CONFIGURATION_ERROR",
            status_code=500
        )
    if isinstance(error, (stripe.APIConnectionError, stripe.APIError)):
        return StorefrontError(
            "Payment provider is unavailable",
            error_code="PAYMENT_PROVIDER_ERROR",
            status_code=502
        )
    return StorefrontError(message, error_code="STRIPE_ERROR", status_code=500)


def invoice_line_description(item: OrderedItemDB) -> str:
    return f"{item.arttitle or 'Print'} ({pricing.format_dimensions(item.width, item.height, unit='')})"


class StripeGateway:
    """Async facade over the Stripe API."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: Optional[str] = None,
        api_version: Optional[str] = None,
        currency: str = "eur",
        invoice_footer: Optional[str] = None,
        invoice_days_until_due: int = 30
    ):
        """
        Initialize the gateway.

        Args:
            api_key: Stripe secret key
            webhook_secret: Signing secret for webhook payloads
            api_version: Pinned Stripe API version
            currency: Default currency
            invoice_footer: Footer printed on order invoices
            invoice_days_until_due: Payment terms for order invoices
        """
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.api_version = api_version
        self.currency = currency
        self.invoice_footer = invoice_footer
        self.invoice_days_until_due = invoice_days_until_due

    @property
    def mode(self) -> str:
        return "live" if self.api_key.startswith("sk_live_") else "test"

    async def _call(self, operation: str, func, *args: Any, **params: Any) -> Any:
        """Run a blocking SDK call in a thread and count the outcome."""
        params.setdefault("api_key", self.api_key)
        if self.api_version:
            params.setdefault("stripe_version", self.api_version)
        try:
            result = await asyncio.to_thread(functools.partial(func, *args, **params))
        except stripe.StripeError as e:
            get_metrics().payment_operations.labels(operation=operation, outcome="error").inc()
            logger.warning(
                "stripe_call_failed",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e)
            )
            raise
        get_metrics().payment_operations.labels(operation=operation, outcome="success").inc()
        return result

    # ========================================================================
    # Customers
    # ========================================================================

    @trace_function("stripe.find_or_create_customer")
    async def find_or_create_customer(
        self,
        email: str,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        address: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        Return the customer registered under ``email``, creating it if absent.
        """
        existing = await self._call("customer_list", stripe.Customer.list, email=email, limit=1)
        if existing["data"]:
            return existing["data"][0]

        params: Dict[str, Any] = {"email": email, "metadata": metadata or {}}
        if name:
            params["name"] = name
        if address:
            params["address"] = address
        customer = await self._call("customer_create", stripe.Customer.create, **params)
        logger.info("stripe_customer_created", customer_id=customer["id"])
        return customer

    # ========================================================================
    # Payment intents
    # ========================================================================

    @trace_function("stripe.create_payment_intent")
    async def create_payment_intent(
        self,
        amount: int,
        currency: Optional[str] = None,
        customer_id: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        description: Optional[str] = None
    ) -> Any:
        """
        Create a payment intent.

        Args:
            amount: Amount in minor currency units
            currency: ISO currency code (defaults to the gateway currency)
            customer_id: Stripe customer to attach
            metadata: String key/values stored on the intent
            description: Statement description
        """
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency or self.currency,
            "metadata": metadata or {},
            "automatic_payment_methods": {"enabled": True},
        }
        if customer_id:
            params["customer"] = customer_id
        if description:
            params["description"] = description
        intent = await self._call("payment_intent_create", stripe.PaymentIntent.create, **params)
        logger.info("stripe_payment_intent_created", payment_intent_id=intent["id"], amount=amount)
        return intent

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Any:
        return await self._call("payment_intent_retrieve", stripe.PaymentIntent.retrieve, payment_intent_id)

    @trace_function("stripe.confirm_payment_intent")
    async def confirm_payment_intent(
        self,
        payment_intent_id: str,
        payment_method_id: Optional[str] = None
    ) -> Any:
        params: Dict[str, Any] = {}
        if payment_method_id:
            params["payment_method"] = payment_method_id
        return await self._call(
            "payment_intent_confirm",
            stripe.PaymentIntent.confirm,
            payment_intent_id,
            **params
        )

    @trace_function("stripe.refund_payment_intent")
    async def refund_payment_intent(self, payment_intent_id: str, amount: Optional[int] = None) -> Any:
        """Refund a payment intent fully, or partially when ``amount`` is given."""
        params: Dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = amount
        refund = await self._call("refund_create", stripe.Refund.create, **params)
        logger.info("stripe_refund_created", payment_intent_id=payment_intent_id, refund_id=refund["id"])
        return refund

    # ========================================================================
    # Saved payment methods
    # ========================================================================

    async def create_setup_intent(self, customer_id: str) -> Any:
        return await self._call(
            "setup_intent_create",
            stripe.SetupIntent.create,
            customer=customer_id,
            payment_method_types=["card"],
            usage="off_session"
        )

    async def list_card_payment_methods(self, customer_id: str) -> List[Any]:
        result = await self._call(
            "payment_method_list",
            stripe.PaymentMethod.list,
            customer=customer_id,
            type="card"
        )
        return list(result["data"])

    async def detach_payment_method(self, payment_method_id: str) -> Any:
        return await self._call("payment_method_detach", stripe.PaymentMethod.detach, payment_method_id)

    async def default_payment_method(self, customer_id: str) -> Optional[str]:
        customer = await self._call("customer_retrieve", stripe.Customer.retrieve, customer_id)
        settings = customer.get("invoice_settings") or {}
        default = settings.get("default_payment_method")
        if isinstance(default, str) or default is None:
            return default
        return default["id"]

    # ========================================================================
    # Webhooks and invoices
    # ========================================================================

    def construct_webhook_event(self, payload: bytes, signature: str) -> Any:
        """
        Verify and parse a webhook payload.

        Raises:
            ValueError: Payload is not valid JSON
            stripe.SignatureVerificationError: Signature mismatch
        """
        return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)

    @trace_function("stripe.create_order_invoice")
    async def create_order_invoice(
        self,
        customer_id: str,
        order: OrderDB,
        items: Sequence[OrderedItemDB]
    ) -> Any:
        """
        Issue and finalize an invoice mirroring an order's lines.

        Returns:
            The finalized invoice
        """
        for item in items:
            await self._call(
                "invoice_item_create",
                stripe.InvoiceItem.create,
                customer=customer_id,
                currency=self.currency,
                unit_amount=pricing.to_minor_units(item.price or 0),
                quantity=item.quantity or 1,
                description=invoice_line_description(item),
                metadata={"orderId": order.document_id, "orderedItemId": item.document_id}
            )

        if order.shipping_cost and order.shipping_cost > 0:
            await self._call(
                "invoice_item_create",
                stripe.InvoiceItem.create,
                customer=customer_id,
                currency=self.currency,
                amount=pricing.to_minor_units(order.shipping_cost),
                description="Shipping",
                metadata={"orderId": order.document_id}
            )

        params: Dict[str, Any] = {
            "customer": customer_id,
            "collection_method": "send_invoice",
            "days_until_due": self.invoice_days_until_due,
            "pending_invoice_items_behavior": "include",
            "metadata": {"orderId": order.document_id},
        }
        if self.invoice_footer:
            params["footer"] = self.invoice_footer
        invoice = await self._call("invoice_create", stripe.Invoice.create, **params)
        finalized = await self._call("invoice_finalize", stripe.Invoice.finalize_invoice, invoice["id"])
        logger.info("stripe_invoice_finalized", invoice_id=finalized["id"], order_id=order.document_id)
        return finalized

    # ========================================================================
    # Health
    # ========================================================================

    async def ping(self) -> Dict[str, Any]:
        """Retrieve the account to prove the key works."""
        account = await self._call("account_retrieve", stripe.Account.retrieve)
        return {
            "accountId": account.get("id"),
            "country": account.get("country"),
            "chargesEnabled": account.get("charges_enabled"),
            "mode": self.mode,
        }
