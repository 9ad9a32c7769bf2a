"""
Order and ordered item models.

Covers order lifecycle statuses, fulfillment statuses for individual
prints, database rows and request bodies. Create and update bodies follow
the ``{"data": {...}}`` wrapping used by the storefront frontend.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field


# ============================================================================
# Status Enums
# ============================================================================


class OrderStatus(str, Enum):
    """
    Order lifecycle.

    - PENDING: created from a cart, awaiting payment
    - PAID / FAILED: payment outcome reported by the provider
    - CANCELLED, SHIPPED, DELIVERED: set by staff
    - REFUNDED: payment refunded through the provider
    """
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    REFUNDED = "refunded"

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class FulfillmentStatus(str, Enum):
    """Production state of a single ordered print."""
    PENDING = "pending"
    PROCESSING = "processing"
    PRINTED = "printed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"

    @classmethod
    def values(cls):
        return [member.value for member in cls]


PIPELINE_STATUSES = (
    FulfillmentStatus.PENDING.value,
    FulfillmentStatus.PROCESSING.value,
    FulfillmentStatus.PRINTED.value,
)


# ============================================================================
# Database Models
# ============================================================================


class OrderDB(BaseModel):
    """Order row."""
    id: int
    document_id: str
    user_id: str
    user_email: Optional[str] = None
    total_price: float
    shipping_cost: float = 0.0
    status: str = OrderStatus.PENDING.value
    address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    stripe_payment_id: Optional[str] = None
    stripe_invoice_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderedItemDB(BaseModel):
    """Ordered item row."""
    id: int
    document_id: str
    order_id: int
    order_document_id: Optional[str] = None
    art_id: Optional[int] = None
    paper_type_id: Optional[int] = None
    arttitle: Optional[str] = None
    artistname: Optional[str] = None
    width: float
    height: float
    price: float
    quantity: int = 1
    total_price: float
    fulfillment_status: str = FulfillmentStatus.PENDING.value
    tracking_number: Optional[str] = None
    fulfillment_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ============================================================================
# Requests
# ============================================================================


class CreateOrderRequest(BaseModel):
    """Check out a cart into an order."""
    cart_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("cartId", "cart_id"),
        description="Cart document id"
    )
    shipping_cost: float = Field(
        default=0.0,
        ge=0,
        validation_alias=AliasChoices("shipping_cost", "shippingCost")
    )
    address: Optional[Dict[str, Any]] = None
    payment_intent_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("paymentIntentId", "payment_intent_id"),
        description="Provider payment id when the cart was paid up front"
    )


class CreateOrderBody(BaseModel):
    data: CreateOrderRequest


class UpdateOrderRequest(BaseModel):
    """Staff update of an order. Status is checked against ``OrderStatus``."""
    status: Optional[str] = None
    shipping_cost: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class UpdateOrderBody(BaseModel):
    data: UpdateOrderRequest


class FulfillmentUpdateRequest(BaseModel):
    """Move an ordered print through production."""
    fulfillment_status: str = Field(
        ...,
        validation_alias=AliasChoices("fulfillmentStatus", "fulfillment_status")
    )
    tracking_number: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("trackingNumber", "tracking_number")
    )
    notes: Optional[str] = None
