"""
Catalog service.

Browsing, search and quoting over artworks, paper types and artists.
Records returned to clients are enriched with derived values
(estimated price, popularity tier, availability, price category).
"""

import structlog
from typing import Any, Dict, List, Optional, Tuple

from storefront.src.config import get_settings
from storefront.src.exceptions import NotFoundError, ValidationError
from storefront.src.models.catalog import ArtworkDB, ArtworkFilter, PaperTypeDB
from storefront.src.models.common import PaginationMeta
from storefront.src.repositories.catalog_repo import CatalogRepository
from storefront.src.services import pricing

logger = structlog.get_logger(__name__)

POPULAR_LIMIT_MAX = 50
POPULAR_PAPER_USAGE = 10
RECENT_ARTWORKS = 5


def artwork_view(artwork: ArtworkDB) -> Dict[str, Any]:
    """Serialize an artwork with its derived values."""
    data = artwork.model_dump(mode="json")
    data["estimatedPrice"] = pricing.estimated_price(artwork)
    data["popularityTier"] = pricing.popularity_tier(artwork.popularityscore)
    data["isAvailable"] = pricing.is_available(artwork)
    return data


def parse_sort(sort: Optional[str]) -> Tuple[str, bool]:
    """Parse ``field`` or ``field:asc|desc`` into (field, descending)."""
    if not sort:
        return "popularityscore", True
    field, _, direction = sort.partition(":")
    return field.strip(), direction.strip().lower() != "asc"


class CatalogService:
    """Service for catalog browsing and price quotes."""

    def __init__(self, catalog_repo: CatalogRepository):
        """
        Initialize catalog service.

        Args:
            catalog_repo: Catalog repository
        """
        self.catalog_repo = catalog_repo
        self.settings = get_settings()

    def _page_size(self, page_size: Optional[int]) -> int:
        if not page_size or page_size < 1:
            return self.settings.pagination_default_limit
        return min(page_size, self.settings.pagination_max_limit)

    # ========================================================================
    # Artworks
    # ========================================================================

    async def list_artworks(
        self,
        filters: ArtworkFilter,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Tuple[List[Dict[str, Any]], PaginationMeta]:
        """
        List artworks one page at a time.

        Args:
            filters: Search, price and popularity filters plus sort
            page: 1-based page number
            page_size: Requested page size, clamped to the configured maximum

        Returns:
            Tuple of (enriched artworks, pagination metadata)
        """
        page = max(page, 1)
        size = self._page_size(page_size)
        artworks, total = await self.catalog_repo.list_artworks(
            filters, limit=size, offset=(page - 1) * size
        )
        logger.debug("artworks_listed", count=len(artworks), total=total, page=page)
        return [artwork_view(a) for a in artworks], PaginationMeta.build(page, size, total)

    async def get_artwork(self, document_id: str) -> ArtworkDB:
        artwork = await self.catalog_repo.get_artwork(document_id)
        if artwork is None:
            raise NotFoundError("Artwork not found")
        return artwork

    async def get_artwork_view(self, document_id: str) -> Dict[str, Any]:
        return artwork_view(await self.get_artwork(document_id))

    async def popular_artworks(self, limit: int = 10) -> List[Dict[str, Any]]:
        limit = min(max(limit, 1), POPULAR_LIMIT_MAX)
        artworks = await self.catalog_repo.list_popular_artworks(limit, min_popularity=1)
        return [artwork_view(a) for a in artworks]

    async def search_artworks(
        self,
        query: str,
        filters: ArtworkFilter,
        limit: int = 25
    ) -> List[Dict[str, Any]]:
        """
        Free-text search on artwork and artist names.

        Raises:
            ValidationError: If the query is blank
        """
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        filters = filters.model_copy(update={"search": query.strip()})
        limit = min(max(limit, 1), self.settings.pagination_max_limit)
        artworks, _ = await self.catalog_repo.list_artworks(filters, limit=limit, offset=0)
        return [artwork_view(a) for a in artworks]

    async def artwork_statistics(self) -> Dict[str, Any]:
        """Catalog-wide totals plus the most popular and most recent artworks."""
        stats = await self.catalog_repo.artwork_statistics()
        most_popular = await self.catalog_repo.list_popular_artworks(1, min_popularity=0)
        recent = await self.catalog_repo.list_recent_artworks(RECENT_ARTWORKS)
        return {
            "totalArtworks": stats["total"],
            "publishedArtworks": stats["published"],
            "averageBasePrice": pricing.round_money(stats["average_price"]),
            "mostPopular": artwork_view(most_popular[0]) if most_popular else None,
            "recentArtworks": [artwork_view(a) for a in recent],
        }

    async def calculate_price(
        self,
        document_id: str,
        width: float,
        height: float,
        paper_type_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Quote an artwork at the given size, with an optional paper surcharge."""
        artwork = await self.get_artwork(document_id)
        paper_type = None
        if paper_type_id:
            paper_type = await self.catalog_repo.get_paper_type(paper_type_id)
            if paper_type is None:
                raise NotFoundError("Paper type not found")

        quote = pricing.price_breakdown(artwork, width, height, paper_type)
        logger.info(
            "artwork_price_calculated",
            artwork_id=document_id,
            final_price=quote["finalPrice"]
        )
        return quote

    # ========================================================================
    # Paper Types
    # ========================================================================

    @staticmethod
    def paper_type_view(paper_type: PaperTypeDB, usage: int) -> Dict[str, Any]:
        data = paper_type.model_dump(mode="json")
        data["usageCount"] = usage
        data["isPopular"] = usage >= POPULAR_PAPER_USAGE
        data["priceCategory"] = pricing.price_category(paper_type.paper_price_per_cm_square)
        return data

    async def list_paper_types(self) -> List[Dict[str, Any]]:
        paper_types = await self.catalog_repo.list_paper_types()
        usage = await self.catalog_repo.paper_type_usage()
        return [self.paper_type_view(p, usage.get(p.id, 0)) for p in paper_types]

    async def get_paper_type(self, document_id: str) -> PaperTypeDB:
        paper_type = await self.catalog_repo.get_paper_type(document_id)
        if paper_type is None:
            raise NotFoundError("Paper type not found")
        return paper_type

    async def get_paper_type_view(self, document_id: str) -> Dict[str, Any]:
        paper_type = await self.get_paper_type(document_id)
        usage = await self.catalog_repo.paper_type_usage()
        return self.paper_type_view(paper_type, usage.get(paper_type.id, 0))

    async def calculate_paper_cost(self, document_id: str, width: float, height: float) -> Dict[str, Any]:
        """
        Cost of the paper alone for a print.

        Raises:
            NotFoundError: Unknown paper type
            ValidationError: Paper type without a positive price
        """
        paper_type = await self.get_paper_type(document_id)
        if paper_type.paper_price_per_cm_square <= 0:
            raise ValidationError("Paper type has no valid pricing")
        return pricing.paper_cost(paper_type, width, height)

    # ========================================================================
    # Artists
    # ========================================================================

    async def list_artists(
        self,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Tuple[List[Dict[str, Any]], PaginationMeta]:
        page = max(page, 1)
        size = self._page_size(page_size)
        artists, total = await self.catalog_repo.list_artists(limit=size, offset=(page - 1) * size)
        return [a.model_dump(mode="json") for a in artists], PaginationMeta.build(page, size, total)

    async def featured_artists(self, limit: int = 10) -> List[Dict[str, Any]]:
        artists = await self.catalog_repo.list_featured_artists(min(max(limit, 1), POPULAR_LIMIT_MAX))
        return [a.model_dump(mode="json") for a in artists]

    async def get_artist(self, document_id: str) -> Dict[str, Any]:
        """Artist with their published artworks."""
        artist = await self.catalog_repo.get_artist(document_id)
        if artist is None:
            raise NotFoundError("Artist not found")
        works = await self.catalog_repo.list_artworks_by_artists(
            [artist.id], exclude_ids=[], limit=self.settings.pagination_max_limit
        )
        data = artist.model_dump(mode="json")
        data["artworks"] = [artwork_view(w) for w in works]
        data["artworkCount"] = len(works)
        return data
