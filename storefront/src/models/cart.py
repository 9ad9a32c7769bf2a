"""
Cart and cart item models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class CartStatus(str, Enum):
    """Cart lifecycle. A converted cart has been checked out into an order."""
    ACTIVE = "active"
    CONVERTED = "converted"


DEFAULT_PRINT_WIDTH = 30.0
DEFAULT_PRINT_HEIGHT = 40.0


# ============================================================================
# Database Models
# ============================================================================


class CartDB(BaseModel):
    """Cart row."""
    id: int
    document_id: str
    user_id: str
    total_price: float = 0.0
    status: str = CartStatus.ACTIVE.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CartItemDB(BaseModel):
    """Cart item row, with the artwork and paper document ids joined in."""
    id: int
    document_id: str
    cart_id: int
    art_id: Optional[int] = None
    art_document_id: Optional[str] = None
    paper_type_id: Optional[int] = None
    paper_type_document_id: Optional[str] = None
    arttitle: Optional[str] = None
    artistname: Optional[str] = None
    width: float
    height: float
    price: float
    quantity: int = 1
    total_price: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ============================================================================
# Requests
# ============================================================================


class AddCartItemRequest(BaseModel):
    """Add a configured print to the caller's cart."""
    art_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("artId", "art_id"),
        description="Artwork document id"
    )
    paper_type_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("paperTypeId", "paper_type_id"),
        description="Paper type document id"
    )
    quantity: int = Field(default=1, gt=0, description="Number of prints")
    width: float = Field(
        default=DEFAULT_PRINT_WIDTH,
        gt=0,
        validation_alias=AliasChoices("customWidth", "width"),
        description="Print width in cm"
    )
    height: float = Field(
        default=DEFAULT_PRINT_HEIGHT,
        gt=0,
        validation_alias=AliasChoices("customHeight", "height"),
        description="Print height in cm"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "artId": "0b9f4d7e-6a43-4c53-9a8f-2b1f4cf0c2de",
                "paperTypeId": "3c1d2b8a-0e4f-4a2b-8d6e-5f7a9b0c1d2e",
                "quantity": 1,
                "customWidth": 40,
                "customHeight": 50
            }
        }
    }


class UpdateQuantityRequest(BaseModel):
    """New quantity for a cart line."""
    quantity: int = Field(..., gt=0)


class CartPricingRequest(BaseModel):
    """Quote a print before adding it to the cart."""
    artwork_id: str = Field(
        ...,
        validation_alias=AliasChoices("artworkId", "artwork_id")
    )
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    paper_type_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("paperTypeId", "paper_type_id")
    )
    quantity: int = Field(default=1, gt=0)
