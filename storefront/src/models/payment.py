"""
Payment request models.

Amounts are expressed in major currency units (euros) at the API surface
and converted to minor units before they reach the payment provider.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class CartPaymentIntentRequest(BaseModel):
    """Start paying for the caller's cart."""
    cart_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("cartId", "cart_id")
    )
    shipping_cost: float = Field(
        default=0.0,
        ge=0,
        validation_alias=AliasChoices("shippingCost", "shipping_cost")
    )


class ConfirmCartPaymentRequest(BaseModel):
    """Finish checkout once the provider reports the intent as succeeded."""
    payment_intent_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("paymentIntentId", "payment_intent_id")
    )
    cart_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("cartId", "cart_id")
    )


class PaymentIntentRequest(BaseModel):
    """Generic payment intent for an arbitrary amount."""
    amount: float = Field(..., description="Amount in major currency units")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    order_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("orderId", "order_id")
    )


class ConfirmPaymentRequest(BaseModel):
    """Confirm a payment intent, optionally with a payment method."""
    payment_intent_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("paymentIntentId", "payment_intent_id")
    )
    payment_method_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("paymentMethodId", "payment_method_id")
    )


class RefundRequest(BaseModel):
    """Refund a paid order, fully or partially."""
    order_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("orderId", "order_id")
    )
    amount: Optional[float] = Field(None, gt=0)
