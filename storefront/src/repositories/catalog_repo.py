"""
Catalog repository for database operations.

Read-mostly access to artists, artworks and paper types using asyncpg with
PostgreSQL. Listing queries build their WHERE clause from the supplied
filter and return the total count alongside the page.
"""

import asyncpg
import structlog
from typing import Any, Dict, List, Optional, Sequence, Tuple

from storefront.src.models.catalog import (
    ARTWORK_SORT_FIELDS,
    ArtistDB,
    ArtworkDB,
    ArtworkFilter,
    PaperTypeDB,
)

logger = structlog.get_logger(__name__)

ARTWORK_SELECT = """
    SELECT w.id, w.document_id, w.artname, w.artist_id, a.name AS artist_name,
           w.artimage_url, w.art_thumbnail, w.original_width, w.original_height,
           w.base_price_per_cm_square, w.max_size, w.popularityscore,
           w.created_at, w.updated_at, w.published_at
    FROM artists_works w
    LEFT JOIN artists a ON a.id = w.artist_id
"""

PAPER_TYPE_SELECT = """
    SELECT id, document_id, paper_names, paper_price_per_cm_square, price_multiplier,
           description, created_at, updated_at, published_at
    FROM paper_types
"""

ARTIST_SELECT = """
    SELECT id, document_id, name, biography, birth_year, death_year, featured,
           created_at, updated_at, published_at
    FROM artists
"""


class CatalogRepository:
    """Repository for artists, artworks and paper types."""

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize catalog repository.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    # ========================================================================
    # Artworks
    # ========================================================================

    @staticmethod
    def _artwork_where(filters: ArtworkFilter) -> Tuple[str, List[Any]]:
        where_clauses = []
        params: List[Any] = []
        param_count = 1

        if filters.published_only:
            where_clauses.append("w.published_at IS NOT NULL")

        if filters.search:
            where_clauses.append(
                f"(w.artname ILIKE ${param_count} OR a.name ILIKE ${param_count})"
            )
            params.append(f"%{filters.search}%")
            param_count += 1

        if filters.min_price is not None:
            where_clauses.append(f"w.base_price_per_cm_square >= ${param_count}")
            params.append(filters.min_price)
            param_count += 1

        if filters.max_price is not None:
            where_clauses.append(f"w.base_price_per_cm_square <= ${param_count}")
            params.append(filters.max_price)
            param_count += 1

        if filters.min_popularity is not None:
            where_clauses.append(f"w.popularityscore >= ${param_count}")
            params.append(filters.min_popularity)
            param_count += 1

        if filters.max_popularity is not None:
            where_clauses.append(f"w.popularityscore <= ${param_count}")
            params.append(filters.max_popularity)
            param_count += 1

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        return where_sql, params

    async def list_artworks(
        self,
        filters: ArtworkFilter,
        limit: int,
        offset: int = 0
    ) -> Tuple[List[ArtworkDB], int]:
        """
        List artworks with filtering and pagination.

        Args:
            filters: Filter parameters
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (artworks, total count)
        """
        sort_field = filters.sort_field if filters.sort_field in ARTWORK_SORT_FIELDS else "popularityscore"
        direction = "DESC" if filters.sort_desc else "ASC"

        try:
            async with self.pool.acquire() as conn:
                where_sql, params = self._artwork_where(filters)

                total = await conn.fetchval(
                    f"""
                    SELECT COUNT(*)
                    FROM artists_works w
                    LEFT JOIN artists a ON a.id = w.artist_id
                    {where_sql}
                    """,
                    *params
                )

                limit_param = f"${len(params) + 1}"
                offset_param = f"${len(params) + 2}"
                rows = await conn.fetch(
                    f"""
                    {ARTWORK_SELECT}
                    {where_sql}
                    ORDER BY w.{sort_field} {direction}, w.id ASC
                    LIMIT {limit_param} OFFSET {offset_param}
                    """,
                    *params,
                    limit,
                    offset
                )

                return [ArtworkDB(**dict(row)) for row in rows], total

        except Exception as e:
            logger.error("artwork_list_failed", error=str(e))
            raise

    async def get_artwork(self, document_id: str) -> Optional[ArtworkDB]:
        """
        Get artwork by document id.

        Args:
            document_id: Artwork document id

        Returns:
            Artwork or None if not found
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"{ARTWORK_SELECT} WHERE w.document_id = $1",
                    document_id
                )
                if not row:
                    logger.debug("artwork_not_found", document_id=document_id)
                    return None
                return ArtworkDB(**dict(row))

        except Exception as e:
            logger.error("artwork_get_failed", error=str(e), document_id=document_id)
            raise

    async def get_artwork_by_id(self, artwork_id: int) -> Optional[ArtworkDB]:
        """Get artwork by primary key."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(f"{ARTWORK_SELECT} WHERE w.id = $1", artwork_id)
                return ArtworkDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("artwork_get_by_id_failed", error=str(e), artwork_id=artwork_id)
            raise

    async def list_popular_artworks(
        self,
        limit: int,
        min_popularity: int = 1
    ) -> List[ArtworkDB]:
        """Published artworks at or above a popularity score, most popular first."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    {ARTWORK_SELECT}
                    WHERE w.published_at IS NOT NULL AND w.popularityscore >= $1
                    ORDER BY w.popularityscore DESC, w.id ASC
                    LIMIT $2
                    """,
                    min_popularity,
                    limit
                )
                return [ArtworkDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("artwork_popular_failed", error=str(e))
            raise

    async def list_recent_artworks(self, limit: int) -> List[ArtworkDB]:
        """Most recently created artworks."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"{ARTWORK_SELECT} ORDER BY w.created_at DESC, w.id DESC LIMIT $1",
                    limit
                )
                return [ArtworkDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("artwork_recent_failed", error=str(e))
            raise

    async def list_artworks_by_artists(
        self,
        artist_ids: Sequence[int],
        exclude_ids: Sequence[int],
        limit: int
    ) -> List[ArtworkDB]:
        """
        Published artworks by any of the given artists.

        Args:
            artist_ids: Artist primary keys
            exclude_ids: Artwork primary keys to leave out
            limit: Maximum number of artworks

        Returns:
            Artworks ordered by popularity
        """
        if not artist_ids:
            return []
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    {ARTWORK_SELECT}
                    WHERE w.published_at IS NOT NULL
                      AND w.artist_id = ANY($1::int[])
                      AND NOT (w.id = ANY($2::int[]))
                    ORDER BY w.popularityscore DESC, w.id ASC
                    LIMIT $3
                    """,
                    list(artist_ids),
                    list(exclude_ids),
                    limit
                )
                return [ArtworkDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("artwork_by_artists_failed", error=str(e))
            raise

    async def adjust_popularity(self, artwork_id: int, delta: int) -> Optional[int]:
        """
        Add ``delta`` to an artwork's popularity score, never going below zero.

        Returns:
            New score, or None if the artwork does not exist
        """
        try:
            async with self.pool.acquire() as conn:
                score = await conn.fetchval(
                    """
                    UPDATE artists_works
                    SET popularityscore = GREATEST(popularityscore + $2, 0),
                        updated_at = NOW()
                    WHERE id = $1
                    RETURNING popularityscore
                    """,
                    artwork_id,
                    delta
                )
                logger.debug("artwork_popularity_adjusted", artwork_id=artwork_id, delta=delta, score=score)
                return score

        except Exception as e:
            logger.error("artwork_popularity_update_failed", error=str(e), artwork_id=artwork_id)
            raise

    async def artwork_statistics(self) -> Dict[str, Any]:
        """Aggregate counts and average base price over all artworks."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT COUNT(*) AS total,
                           COUNT(published_at) AS published,
                           COALESCE(AVG(base_price_per_cm_square), 0) AS average_price
                    FROM artists_works
                    """
                )
                return {
                    "total": row["total"],
                    "published": row["published"],
                    "average_price": float(row["average_price"]),
                }

        except Exception as e:
            logger.error("artwork_statistics_failed", error=str(e))
            raise

    # ========================================================================
    # Paper Types
    # ========================================================================

    async def list_paper_types(self) -> List[PaperTypeDB]:
        """List published paper types ordered by price."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    {PAPER_TYPE_SELECT}
                    WHERE published_at IS NOT NULL
                    ORDER BY paper_price_per_cm_square ASC, id ASC
                    """
                )
                return [PaperTypeDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("paper_type_list_failed", error=str(e))
            raise

    async def get_paper_type(self, document_id: str) -> Optional[PaperTypeDB]:
        """Get paper type by document id."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(f"{PAPER_TYPE_SELECT} WHERE document_id = $1", document_id)
                return PaperTypeDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("paper_type_get_failed", error=str(e), document_id=document_id)
            raise

    async def paper_type_usage(self) -> Dict[int, int]:
        """Number of ordered prints per paper type id."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT paper_type_id, COALESCE(SUM(quantity), 0) AS usage
                    FROM ordered_items
                    WHERE paper_type_id IS NOT NULL
                    GROUP BY paper_type_id
                    """
                )
                return {row["paper_type_id"]: int(row["usage"]) for row in rows}

        except Exception as e:
            logger.error("paper_type_usage_failed", error=str(e))
            raise

    # ========================================================================
    # Artists
    # ========================================================================

    async def list_artists(self, limit: int, offset: int = 0) -> Tuple[List[ArtistDB], int]:
        """List published artists alphabetically."""
        try:
            async with self.pool.acquire() as conn:
                total = await conn.fetchval(
                    "SELECT COUNT(*) FROM artists WHERE published_at IS NOT NULL"
                )
                rows = await conn.fetch(
                    f"""
                    {ARTIST_SELECT}
                    WHERE published_at IS NOT NULL
                    ORDER BY name ASC, id ASC
                    LIMIT $1 OFFSET $2
                    """,
                    limit,
                    offset
                )
                return [ArtistDB(**dict(row)) for row in rows], total

        except Exception as e:
            logger.error("artist_list_failed", error=str(e))
            raise

    async def list_featured_artists(self, limit: int) -> List[ArtistDB]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    {ARTIST_SELECT}
                    WHERE published_at IS NOT NULL AND featured
                    ORDER BY name ASC
                    LIMIT $1
                    """,
                    limit
                )
                return [ArtistDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("artist_featured_failed", error=str(e))
            raise

    async def get_artist(self, document_id: str) -> Optional[ArtistDB]:
        """Get artist by document id."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(f"{ARTIST_SELECT} WHERE document_id = $1", document_id)
                return ArtistDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("artist_get_failed", error=str(e), document_id=document_id)
            raise
