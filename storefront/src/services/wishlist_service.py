"""
Wishlist service.

Per-user wishlists with value estimates, popularity feedback on the
catalog, and artist-based recommendations.
"""

import structlog
from typing import Any, Dict, List, Tuple

from storefront.src.exceptions import NotFoundError
from storefront.src.models.auth import CurrentUser
from storefront.src.models.catalog import ArtworkDB
from storefront.src.models.wishlist import WishlistDB
from storefront.src.repositories.catalog_repo import CatalogRepository
from storefront.src.repositories.wishlist_repo import WishlistRepository
from storefront.src.services import pricing
from storefront.src.services.catalog_service import artwork_view

logger = structlog.get_logger(__name__)

RECOMMENDATION_MIN_POPULARITY = 20
LARGE_WISHLIST = 10
TREND_LIMIT = 10


class WishlistService:
    """Service for wishlist operations."""

    def __init__(self, wishlist_repo: WishlistRepository, catalog_repo: CatalogRepository):
        self.wishlist_repo = wishlist_repo
        self.catalog_repo = catalog_repo

    async def _get_or_create(self, user: CurrentUser) -> WishlistDB:
        wishlist = await self.wishlist_repo.get_by_user(user.id)
        if wishlist is None:
            wishlist = await self.wishlist_repo.create(user.id)
        return wishlist

    async def _require_existing(self, user: CurrentUser) -> WishlistDB:
        wishlist = await self.wishlist_repo.get_by_user(user.id)
        if wishlist is None:
            raise NotFoundError("Wishlist not found")
        return wishlist

    async def _artwork(self, document_id: str) -> ArtworkDB:
        artwork = await self.catalog_repo.get_artwork(document_id)
        if artwork is None:
            raise NotFoundError("Artwork not found")
        return artwork

    @staticmethod
    def wishlist_view(wishlist: WishlistDB, artworks: List[ArtworkDB]) -> Dict[str, Any]:
        data = wishlist.model_dump(mode="json")
        data["items"] = [artwork_view(a) for a in artworks]
        data["itemCount"] = len(artworks)
        data["totalValue"] = pricing.wishlist_value(artworks)
        return data

    async def my_wishlist(self, user: CurrentUser) -> Dict[str, Any]:
        wishlist = await self._get_or_create(user)
        artworks = await self.wishlist_repo.list_artworks(wishlist.id)
        return self.wishlist_view(wishlist, artworks)

    async def add_item(self, user: CurrentUser, artwork_document_id: str) -> Dict[str, Any]:
        """
        Add an artwork and bump its popularity score.

        Raises:
            NotFoundError: Unknown artwork
            ConflictError: Artwork already wishlisted
        """
        artwork = await self._artwork(artwork_document_id)
        wishlist = await self._get_or_create(user)
        await self.wishlist_repo.add_artwork(wishlist.id, artwork.id)
        await self.catalog_repo.adjust_popularity(artwork.id, 1)
        logger.info("wishlist_item_added", user_id=user.id, artwork_id=artwork_document_id)

        artworks = await self.wishlist_repo.list_artworks(wishlist.id)
        return self.wishlist_view(wishlist, artworks)

    async def remove_item(self, user: CurrentUser, artwork_document_id: str) -> Dict[str, Any]:
        wishlist = await self._require_existing(user)
        artwork = await self._artwork(artwork_document_id)
        removed = await self.wishlist_repo.remove_artwork(wishlist.id, artwork.id)
        if not removed:
            raise NotFoundError("Artwork not in wishlist")
        logger.info("wishlist_item_removed", user_id=user.id, artwork_id=artwork_document_id)

        artworks = await self.wishlist_repo.list_artworks(wishlist.id)
        return self.wishlist_view(wishlist, artworks)

    async def clear(self, user: CurrentUser) -> Dict[str, Any]:
        wishlist = await self._require_existing(user)
        removed = await self.wishlist_repo.clear(wishlist.id)
        logger.info("wishlist_cleared", user_id=user.id, removed=removed)
        return self.wishlist_view(wishlist, [])

    async def contains(self, user: CurrentUser, artwork_document_id: str) -> Dict[str, Any]:
        wishlist = await self.wishlist_repo.get_by_user(user.id)
        artwork = await self.catalog_repo.get_artwork(artwork_document_id)
        in_wishlist = bool(
            wishlist and artwork and await self.wishlist_repo.has_artwork(wishlist.id, artwork.id)
        )
        return {"artworkId": artwork_document_id, "inWishlist": in_wishlist}

    async def recommendations(self, user: CurrentUser, limit: int = 5) -> Tuple[List[Dict[str, Any]], str]:
        """
        Suggest artworks for the user.

        Other works by artists already in the wishlist come first. An empty
        wishlist falls back to popular artworks.

        Returns:
            Tuple of (artworks, recommendation type)
        """
        limit = min(max(limit, 1), 50)
        wishlist = await self.wishlist_repo.get_by_user(user.id)
        artworks = await self.wishlist_repo.list_artworks(wishlist.id) if wishlist else []

        if not artworks:
            popular = await self.catalog_repo.list_popular_artworks(
                limit, min_popularity=RECOMMENDATION_MIN_POPULARITY
            )
            return [artwork_view(a) for a in popular], "popular"

        artist_ids = sorted({a.artist_id for a in artworks if a.artist_id is not None})
        suggestions = await self.catalog_repo.list_artworks_by_artists(
            artist_ids,
            exclude_ids=[a.id for a in artworks],
            limit=limit
        )
        return [artwork_view(a) for a in suggestions], "personalized"

    async def statistics(self) -> Dict[str, Any]:
        stats = await self.wishlist_repo.statistics(large_threshold=LARGE_WISHLIST)
        trends = await self.wishlist_repo.trends(TREND_LIMIT)
        total = stats["total_wishlists"]
        return {
            "totalWishlists": total,
            "totalWishlistItems": stats["total_items"],
            "averageItemsPerWishlist": round(stats["total_items"] / total, 2) if total else 0.0,
            "mostWishlisted": trends[0] if trends else None,
            "wishlistTrends": trends,
            "userEngagement": {
                "activeWishlists": stats["active"],
                "emptyWishlists": stats["empty"],
                "largeWishlists": stats["large"],
            },
        }
