"""
Response envelope and error models shared by all routers.

List endpoints answer ``{"data": [...], "meta": {"pagination": {...}}}``
and single-record endpoints answer ``{"data": {...}}``.
"""

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response schema."""
    detail: str = Field(
        ...,
        min_length=1,
        description="Error message"
    )
    error_code: Optional[str] = Field(
        None,
        description="Error code"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "detail": "Artwork not found",
                "error_code": None
            }
        }
    }


class PaginationMeta(BaseModel):
    """Page-based pagination metadata."""
    page: int = Field(..., ge=1)
    pageSize: int = Field(..., ge=1)
    pageCount: int = Field(..., ge=0)
    total: int = Field(..., ge=0)

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "PaginationMeta":
        """Compute the page count for a result set."""
        return cls(
            page=page,
            pageSize=page_size,
            pageCount=math.ceil(total / page_size) if page_size else 0,
            total=total,
        )


def envelope(data: Any, **meta: Any) -> Dict[str, Any]:
    """Wrap a payload in the standard ``data``/``meta`` envelope."""
    body: Dict[str, Any] = {"data": data}
    if meta:
        body["meta"] = meta
    return body
