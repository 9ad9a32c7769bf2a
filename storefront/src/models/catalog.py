"""
Catalog models: artists, artworks and paper types.

``*DB`` models mirror database rows; request models validate incoming
bodies and filters.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ============================================================================
# Database Models
# ============================================================================


class ArtistDB(BaseModel):
    """Artist row."""
    id: int
    document_id: str
    name: str
    biography: Optional[str] = None
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PaperTypeDB(BaseModel):
    """Paper type row."""
    id: int
    document_id: str
    paper_names: str
    paper_price_per_cm_square: float = 0.0
    price_multiplier: float = 1.0
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ArtworkDB(BaseModel):
    """Artwork row joined with its artist's name."""
    id: int
    document_id: str
    artname: str
    artist_id: Optional[int] = None
    artist_name: Optional[str] = None
    artimage_url: Optional[str] = None
    art_thumbnail: Optional[str] = None
    original_width: Optional[float] = None
    original_height: Optional[float] = None
    base_price_per_cm_square: float = 0.5
    max_size: Optional[str] = None
    popularityscore: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ============================================================================
# Filters and Requests
# ============================================================================


ARTWORK_SORT_FIELDS = {
    "artname",
    "popularityscore",
    "base_price_per_cm_square",
    "created_at",
    "published_at",
}


class ArtworkFilter(BaseModel):
    """Filter parameters for artwork listings."""
    search: Optional[str] = Field(None, description="Match on artwork or artist name")
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    min_popularity: Optional[int] = Field(None, ge=0)
    max_popularity: Optional[int] = Field(None, ge=0)
    published_only: bool = True
    sort_field: str = "popularityscore"
    sort_desc: bool = True


class CalculatePriceRequest(BaseModel):
    """Print dimensions for a price quote."""
    width: float = Field(..., gt=0, description="Print width in cm")
    height: float = Field(..., gt=0, description="Print height in cm")
    paper_type_id: Optional[str] = Field(
        None,
        alias="paperTypeId",
        description="Paper type document id"
    )

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {"width": 30, "height": 40, "paperTypeId": "5a3f..."}
        }
    }


class PaperCostRequest(BaseModel):
    """Dimensions for a paper cost quote."""
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
