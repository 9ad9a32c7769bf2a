"""
Wishlist repository for database operations.

Each user owns at most one wishlist; membership lives in
``wishlist_artworks`` with a unique (wishlist, artwork) pair.
"""

import asyncpg
import structlog
from typing import Any, Dict, List, Optional

from storefront.src.exceptions import ConflictError
from storefront.src.models.catalog import ArtworkDB
from storefront.src.models.wishlist import WishlistDB
from storefront.src.repositories.catalog_repo import ARTWORK_SELECT

logger = structlog.get_logger(__name__)

WISHLIST_COLUMNS = "id, document_id, user_id, created_at, updated_at"


class WishlistRepository:
    """Repository for wishlist database operations."""

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize wishlist repository.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    async def get_by_user(self, user_id: str) -> Optional[WishlistDB]:
        """Get the user's wishlist, if any."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {WISHLIST_COLUMNS} FROM wishlists WHERE user_id = $1",
                    user_id
                )
                return WishlistDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("wishlist_get_failed", error=str(e), user_id=user_id)
            raise

    async def create(self, user_id: str) -> WishlistDB:
        """
        Create a wishlist for the user.

        A concurrent create for the same user returns the existing row.
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO wishlists (user_id)
                    VALUES ($1)
                    ON CONFLICT (user_id) DO UPDATE SET updated_at = wishlists.updated_at
                    RETURNING {WISHLIST_COLUMNS}
                    """,
                    user_id
                )
                logger.info("wishlist_created", wishlist_id=row["document_id"], user_id=user_id)
                return WishlistDB(**dict(row))

        except Exception as e:
            logger.error("wishlist_create_failed", error=str(e), user_id=user_id)
            raise

    async def list_artworks(self, wishlist_id: int) -> List[ArtworkDB]:
        """Artworks in a wishlist, most popular first."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    {ARTWORK_SELECT}
                    JOIN wishlist_artworks wa ON wa.art_id = w.id
                    WHERE wa.wishlist_id = $1
                    ORDER BY w.popularityscore DESC, wa.added_at DESC
                    """,
                    wishlist_id
                )
                return [ArtworkDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("wishlist_artworks_list_failed", error=str(e), wishlist_id=wishlist_id)
            raise

    async def has_artwork(self, wishlist_id: int, art_id: int) -> bool:
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval(
                    """
                    SELECT EXISTS (
                        SELECT 1 FROM wishlist_artworks WHERE wishlist_id = $1 AND art_id = $2
                    )
                    """,
                    wishlist_id,
                    art_id
                )

        except Exception as e:
            logger.error("wishlist_membership_check_failed", error=str(e), wishlist_id=wishlist_id)
            raise

    async def add_artwork(self, wishlist_id: int, art_id: int) -> None:
        """
        Add an artwork to a wishlist.

        Raises:
            ConflictError: If the artwork is already in the wishlist
        """
        try:
            async with self.pool.acquire() as conn:
                try:
                    await conn.execute(
                        "INSERT INTO wishlist_artworks (wishlist_id, art_id) VALUES ($1, $2)",
                        wishlist_id,
                        art_id
                    )
                    await conn.execute(
                        "UPDATE wishlists SET updated_at = NOW() WHERE id = $1",
                        wishlist_id
                    )
                except asyncpg.UniqueViolationError as e:
                    logger.warning("wishlist_artwork_duplicate", wishlist_id=wishlist_id, art_id=art_id)
                    raise ConflictError("Artwork already in wishlist") from e

        except ConflictError:
            raise
        except Exception as e:
            logger.error("wishlist_add_failed", error=str(e), wishlist_id=wishlist_id)
            raise

    async def remove_artwork(self, wishlist_id: int, art_id: int) -> bool:
        """Remove an artwork. Returns True if it was present."""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM wishlist_artworks WHERE wishlist_id = $1 AND art_id = $2",
                    wishlist_id,
                    art_id
                )
                return result.split()[-1] != "0"

        except Exception as e:
            logger.error("wishlist_remove_failed", error=str(e), wishlist_id=wishlist_id)
            raise

    async def clear(self, wishlist_id: int) -> int:
        """Remove every artwork. Returns the number removed."""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM wishlist_artworks WHERE wishlist_id = $1",
                    wishlist_id
                )
                return int(result.split()[-1])

        except Exception as e:
            logger.error("wishlist_clear_failed", error=str(e), wishlist_id=wishlist_id)
            raise

    async def statistics(self, large_threshold: int = 10) -> Dict[str, Any]:
        """Wishlist counts and size distribution."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    WITH sizes AS (
                        SELECT wl.id, COUNT(wa.id) AS size
                        FROM wishlists wl
                        LEFT JOIN wishlist_artworks wa ON wa.wishlist_id = wl.id
                        GROUP BY wl.id
                    )
                    SELECT COUNT(*) AS total_wishlists,
                           COALESCE(SUM(size), 0) AS total_items,
                           COUNT(*) FILTER (WHERE size > 0) AS active,
                           COUNT(*) FILTER (WHERE size = 0) AS empty,
                           COUNT(*) FILTER (WHERE size > $1) AS large
                    FROM sizes
                    """,
                    large_threshold
                )
                return {
                    "total_wishlists": row["total_wishlists"],
                    "total_items": int(row["total_items"]),
                    "active": row["active"],
                    "empty": row["empty"],
                    "large": row["large"],
                }

        except Exception as e:
            logger.error("wishlist_statistics_failed", error=str(e))
            raise

    async def trends(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most wishlisted artworks with their wishlist counts."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT w.document_id, w.artname, COUNT(*) AS wishlist_count
                    FROM wishlist_artworks wa
                    JOIN artists_works w ON w.id = wa.art_id
                    GROUP BY w.id, w.document_id, w.artname
                    ORDER BY wishlist_count DESC, w.artname ASC
                    LIMIT $1
                    """,
                    limit
                )
                return [
                    {
                        "documentId": row["document_id"],
                        "artname": row["artname"],
                        "wishlistCount": row["wishlist_count"],
                    }
                    for row in rows
                ]

        except Exception as e:
            logger.error("wishlist_trends_failed", error=str(e))
            raise
