"""
Catalog router: artworks, paper types and artists.

Browsing and price quotes are public. Catalog statistics require the
admin role.
"""

import structlog
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.src.dependencies import get_catalog_service, require_admin
from storefront.src.models.auth import CurrentUser
from storefront.src.models.catalog import ArtworkFilter, CalculatePriceRequest, PaperCostRequest
from storefront.src.models.common import ErrorResponse, envelope
from storefront.src.services.catalog_service import CatalogService, parse_sort

logger = structlog.get_logger(__name__)

artworks_router = APIRouter(
    prefix="/artists-works",
    tags=["Artworks"],
    responses={
        404: {"model": ErrorResponse, "description": "Not Found"},
        422: {"model": ErrorResponse, "description": "Validation Error"}
    }
)

paper_types_router = APIRouter(
    prefix="/paper-types",
    tags=["Paper Types"],
    responses={404: {"model": ErrorResponse, "description": "Not Found"}}
)

artists_router = APIRouter(
    prefix="/artists",
    tags=["Artists"],
    responses={404: {"model": ErrorResponse, "description": "Not Found"}}
)


def artwork_filters(
    search: Optional[str] = Query(None, description="Match on artwork or artist name"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    min_popularity: Optional[int] = Query(None, alias="minPopularity", ge=0),
    max_popularity: Optional[int] = Query(None, alias="maxPopularity", ge=0),
    sort: Optional[str] = Query(None, description="field or field:asc|desc")
) -> ArtworkFilter:
    """Collect listing filters from query parameters."""
    sort_field, sort_desc = parse_sort(sort)
    return ArtworkFilter(
        search=search,
        min_price=min_price,
        max_price=max_price,
        min_popularity=min_popularity,
        max_popularity=max_popularity,
        sort_field=sort_field,
        sort_desc=sort_desc,
    )


# ============================================================================
# ARTWORKS
# ============================================================================


@artworks_router.get("", summary="List artworks")
async def list_artworks(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    filters: ArtworkFilter = Depends(artwork_filters),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    """
    Paginated list of published artworks.

    Each artwork carries `estimatedPrice`, `popularityTier` and
    `isAvailable`. Pagination is reported under `meta.pagination`.
    """
    artworks, pagination = await catalog_service.list_artworks(filters, page, page_size)
    return envelope(artworks, pagination=pagination.model_dump())


@artworks_router.get("/popular", summary="Popular artworks")
async def popular_artworks(
    limit: int = Query(10, ge=1),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    artworks = await catalog_service.popular_artworks(limit)
    return envelope(artworks)


@artworks_router.get("/search", summary="Search artworks")
async def search_artworks(
    q: Optional[str] = Query(None, description="Search text"),
    limit: int = Query(25, ge=1),
    filters: ArtworkFilter = Depends(artwork_filters),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    artworks = await catalog_service.search_artworks(q or "", filters, limit)
    return envelope(artworks, query=q, count=len(artworks))


@artworks_router.get("/stats", summary="Artwork statistics")
async def artwork_statistics(
    admin: CurrentUser = Depends(require_admin),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    return envelope(await catalog_service.artwork_statistics())


@artworks_router.get("/{document_id}", summary="Get artwork")
async def get_artwork(
    document_id: str,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    return envelope(await catalog_service.get_artwork_view(document_id))


@artworks_router.post(
    "/{document_id}/calculate-price",
    status_code=status.HTTP_200_OK,
    summary="Quote an artwork print"
)
async def calculate_price(
    document_id: str,
    request: CalculatePriceRequest,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    """Price of the artwork at the given size, including the paper surcharge."""
    quote = await catalog_service.calculate_price(
        document_id,
        request.width,
        request.height,
        request.paper_type_id
    )
    return envelope({"price_breakdown": quote})


# ============================================================================
# PAPER TYPES
# ============================================================================


@paper_types_router.get("", summary="List paper types")
async def list_paper_types(
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    return envelope(await catalog_service.list_paper_types())


@paper_types_router.get("/{document_id}", summary="Get paper type")
async def get_paper_type(
    document_id: str,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    return envelope(await catalog_service.get_paper_type_view(document_id))


@paper_types_router.post(
    "/{document_id}/calculate-cost",
    status_code=status.HTTP_200_OK,
    summary="Quote paper cost"
)
async def calculate_paper_cost(
    document_id: str,
    request: PaperCostRequest,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    cost = await catalog_service.calculate_paper_cost(document_id, request.width, request.height)
    return envelope(cost)


# ============================================================================
# ARTISTS
# ============================================================================


@artists_router.get("", summary="List artists")
async def list_artists(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    artists, pagination = await catalog_service.list_artists(page, page_size)
    return envelope(artists, pagination=pagination.model_dump())


@artists_router.get("/featured", summary="Featured artists")
async def featured_artists(
    limit: int = Query(10, ge=1),
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    return envelope(await catalog_service.featured_artists(limit))


@artists_router.get("/{document_id}", summary="Get artist")
async def get_artist(
    document_id: str,
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> Dict[str, Any]:
    """Artist with their published artworks."""
    return envelope(await catalog_service.get_artist(document_id))
