"""Wishlist models."""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class WishlistDB(BaseModel):
    """Wishlist row."""
    id: int
    document_id: str
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class WishlistItemRequest(BaseModel):
    """Artwork to add to or remove from the caller's wishlist."""
    artwork_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("artworkId", "artwork_id"),
        description="Artwork document id"
    )
