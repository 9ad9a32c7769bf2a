"""
Cart repository for database operations.

Async CRUD for carts and cart items using asyncpg with PostgreSQL.
Item queries join the artwork and paper type document ids so callers can
refer to them without extra lookups.
"""

import asyncpg
import structlog
from typing import List, Optional
from contextlib import asynccontextmanager

from storefront.src.exceptions import ValidationError
from storefront.src.models.cart import CartDB, CartItemDB, CartStatus

logger = structlog.get_logger(__name__)

CART_COLUMNS = "id, document_id, user_id, total_price, status, created_at, updated_at"

CART_ITEM_SELECT = """
    SELECT ci.id, ci.document_id, ci.cart_id, ci.art_id, w.document_id AS art_document_id,
           ci.paper_type_id, p.document_id AS paper_type_document_id,
           ci.arttitle, ci.artistname, ci.width, ci.height, ci.price, ci.quantity,
           ci.total_price, ci.created_at, ci.updated_at
    FROM cart_items ci
    LEFT JOIN artists_works w ON w.id = ci.art_id
    LEFT JOIN paper_types p ON p.id = ci.paper_type_id
"""


class CartRepository:
    """Repository for cart database operations."""

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize cart repository.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    @asynccontextmanager
    async def transaction(self):
        """
        Context manager for database transactions.

        Yields:
            asyncpg.Connection: Database connection
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    # ========================================================================
    # Carts
    # ========================================================================

    async def get_active_cart(self, user_id: str) -> Optional[CartDB]:
        """
        Get the user's cart that has not been checked out.

        Args:
            user_id: Owner id

        Returns:
            Cart or None
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {CART_COLUMNS}
                    FROM carts
                    WHERE user_id = $1 AND status <> $2
                    ORDER BY created_at DESC
                    LIMIT 1
                    """,
                    user_id,
                    CartStatus.CONVERTED.value
                )
                return CartDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("cart_get_active_failed", error=str(e), user_id=user_id)
            raise

    async def create_cart(self, user_id: str) -> CartDB:
        """Create an empty active cart."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO carts (user_id, total_price, status)
                    VALUES ($1, 0, $2)
                    RETURNING {CART_COLUMNS}
                    """,
                    user_id,
                    CartStatus.ACTIVE.value
                )
                logger.info("cart_created", cart_id=row["document_id"], user_id=user_id)
                return CartDB(**dict(row))

        except Exception as e:
            logger.error("cart_create_failed", error=str(e), user_id=user_id)
            raise

    async def get_cart(self, document_id: str) -> Optional[CartDB]:
        """Get cart by document id."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {CART_COLUMNS} FROM carts WHERE document_id = $1",
                    document_id
                )
                return CartDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("cart_get_failed", error=str(e), document_id=document_id)
            raise

    async def update_total(self, cart_id: int, total_price: float) -> CartDB:
        """Persist a recomputed cart total."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE carts
                    SET total_price = $2, updated_at = NOW()
                    WHERE id = $1
                    RETURNING {CART_COLUMNS}
                    """,
                    cart_id,
                    total_price
                )
                return CartDB(**dict(row))

        except Exception as e:
            logger.error("cart_update_total_failed", error=str(e), cart_id=cart_id)
            raise

    # ========================================================================
    # Cart Items
    # ========================================================================

    async def list_items(self, cart_id: int) -> List[CartItemDB]:
        """List the items of a cart in insertion order."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"{CART_ITEM_SELECT} WHERE ci.cart_id = $1 ORDER BY ci.id ASC",
                    cart_id
                )
                return [CartItemDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("cart_items_list_failed", error=str(e), cart_id=cart_id)
            raise

    async def get_item(self, document_id: str) -> Optional[CartItemDB]:
        """Get cart item by document id."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"{CART_ITEM_SELECT} WHERE ci.document_id = $1",
                    document_id
                )
                return CartItemDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("cart_item_get_failed", error=str(e), document_id=document_id)
            raise

    async def find_matching_item(
        self,
        cart_id: int,
        art_id: int,
        paper_type_id: Optional[int],
        width: float,
        height: float
    ) -> Optional[CartItemDB]:
        """
        Find a line with the same artwork, paper and size.

        Returns:
            Existing cart item or None
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    {CART_ITEM_SELECT}
                    WHERE ci.cart_id = $1
                      AND ci.art_id = $2
                      AND ci.paper_type_id IS NOT DISTINCT FROM $3
                      AND ci.width = $4
                      AND ci.height = $5
                    LIMIT 1
                    """,
                    cart_id,
                    art_id,
                    paper_type_id,
                    width,
                    height
                )
                return CartItemDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("cart_item_match_failed", error=str(e), cart_id=cart_id)
            raise

    async def create_item(
        self,
        cart_id: int,
        art_id: int,
        paper_type_id: Optional[int],
        arttitle: Optional[str],
        artistname: Optional[str],
        width: float,
        height: float,
        price: float,
        quantity: int
    ) -> CartItemDB:
        """
        Insert a cart line.

        Raises:
            ValidationError: If the cart, artwork or paper type no longer exists
        """
        try:
            async with self.pool.acquire() as conn:
                try:
                    document_id = await conn.fetchval(
                        """
                        INSERT INTO cart_items (cart_id, art_id, paper_type_id, arttitle, artistname,
                                                width, height, price, quantity, total_price)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $8::numeric * $9::integer)
                        RETURNING document_id
                        """,
                        cart_id,
                        art_id,
                        paper_type_id,
                        arttitle,
                        artistname,
                        width,
                        height,
                        price,
                        quantity
                    )
                except asyncpg.ForeignKeyViolationError as e:
                    logger.warning("cart_item_reference_missing", cart_id=cart_id, art_id=art_id)
                    raise ValidationError("Referenced cart, artwork or paper type does not exist") from e

                row = await conn.fetchrow(f"{CART_ITEM_SELECT} WHERE ci.document_id = $1", document_id)
                logger.info("cart_item_created", cart_id=cart_id, item_id=document_id, quantity=quantity)
                return CartItemDB(**dict(row))

        except ValidationError:
            raise
        except Exception as e:
            logger.error("cart_item_create_failed", error=str(e), cart_id=cart_id)
            raise

    async def update_item_quantity(self, item_id: int, quantity: int) -> CartItemDB:
        """Set a line's quantity and recompute its total."""
        try:
            async with self.pool.acquire() as conn:
                document_id = await conn.fetchval(
                    """
                    UPDATE cart_items
                    SET quantity = $2, total_price = price * $2::integer, updated_at = NOW()
                    WHERE id = $1
                    RETURNING document_id
                    """,
                    item_id,
                    quantity
                )
                row = await conn.fetchrow(f"{CART_ITEM_SELECT} WHERE ci.document_id = $1", document_id)
                return CartItemDB(**dict(row))

        except Exception as e:
            logger.error("cart_item_update_failed", error=str(e), item_id=item_id)
            raise

    async def delete_item(self, item_id: int) -> bool:
        """Delete a cart line. Returns True if a row was removed."""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute("DELETE FROM cart_items WHERE id = $1", item_id)
                return result.split()[-1] != "0"

        except Exception as e:
            logger.error("cart_item_delete_failed", error=str(e), item_id=item_id)
            raise

    async def clear_items(self, cart_id: int) -> int:
        """Delete every line of a cart and reset its total."""
        try:
            async with self.transaction() as conn:
                result = await conn.execute("DELETE FROM cart_items WHERE cart_id = $1", cart_id)
                await conn.execute(
                    "UPDATE carts SET total_price = 0, updated_at = NOW() WHERE id = $1",
                    cart_id
                )
                removed = int(result.split()[-1])
                logger.info("cart_cleared", cart_id=cart_id, removed=removed)
                return removed

        except Exception as e:
            logger.error("cart_clear_failed", error=str(e), cart_id=cart_id)
            raise
