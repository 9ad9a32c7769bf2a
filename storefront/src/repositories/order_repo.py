"""
Order repository for database operations.

Async operations for orders and ordered items using asyncpg with
PostgreSQL. Checkout runs as a single transaction spanning the cart and
order tables.
"""

import json

import asyncpg
import structlog
from typing import Any, Dict, List, Optional, Sequence, Tuple
from contextlib import asynccontextmanager

from storefront.src.models.cart import CartDB, CartItemDB, CartStatus
from storefront.src.models.order import (
    FulfillmentStatus,
    OrderDB,
    OrderedItemDB,
    OrderStatus,
)

logger = structlog.get_logger(__name__)

ORDER_COLUMNS = """
    id, document_id, user_id, user_email, total_price, shipping_cost, status, address,
    notes, stripe_payment_id, stripe_invoice_id, created_at, updated_at
"""

ORDERED_ITEM_SELECT = """
    SELECT oi.id, oi.document_id, oi.order_id, o.document_id AS order_document_id,
           oi.art_id, oi.paper_type_id, oi.arttitle, oi.artistname, oi.width, oi.height,
           oi.price, oi.quantity, oi.total_price, oi.fulfillment_status,
           oi.tracking_number, oi.fulfillment_notes, oi.created_at, oi.updated_at
    FROM ordered_items oi
    JOIN orders o ON o.id = oi.order_id
"""

UPDATABLE_ORDER_FIELDS = {
    "status",
    "shipping_cost",
    "total_price",
    "notes",
    "stripe_payment_id",
    "stripe_invoice_id",
}


def _order_from_row(row: asyncpg.Record) -> OrderDB:
    data = dict(row)
    if isinstance(data.get("address"), str):
        data["address"] = json.loads(data["address"])
    return OrderDB(**data)


class OrderRepository:
    """Repository for order database operations."""

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize order repository.

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

    async def create_order_from_cart(
        self,
        cart: CartDB,
        items: Sequence[CartItemDB],
        user_email: Optional[str],
        shipping_cost: float,
        total_price: float,
        address: Optional[Dict[str, Any]] = None,
        stripe_payment_id: Optional[str] = None
    ) -> OrderDB:
        """
        Convert a cart into a pending order.

        Inserts the order and one ordered item per cart item, empties the
        cart and marks it converted. All of it commits or none of it does.

        Args:
            cart: Cart being checked out
            items: Cart items to copy
            user_email: Customer email
            shipping_cost: Shipping added to the item total
            total_price: Order total including shipping
            address: Shipping address
            stripe_payment_id: Payment intent id, when paid up front

        Returns:
            Created order
        """
        try:
            async with self.transaction() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO orders (user_id, user_email, total_price, shipping_cost, status,
                                        address, stripe_payment_id)
                    VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
                    RETURNING {ORDER_COLUMNS}
                    """,
                    cart.user_id,
                    user_email,
                    total_price,
                    shipping_cost,
                    OrderStatus.PENDING.value,
                    json.dumps(address) if address is not None else None,
                    stripe_payment_id
                )
                order_id = row["id"]

                await conn.executemany(
                    """
                    INSERT INTO ordered_items (order_id, art_id, paper_type_id, arttitle, artistname,
                                               width, height, price, quantity, total_price,
                                               fulfillment_status)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    """,
                    [
                        (
                            order_id,
                            item.art_id,
                            item.paper_type_id,
                            item.arttitle,
                            item.artistname,
                            item.width,
                            item.height,
                            item.price,
                            item.quantity,
                            item.total_price,
                            FulfillmentStatus.PENDING.value,
                        )
                        for item in items
                    ]
                )

                await conn.execute("DELETE FROM cart_items WHERE cart_id = $1", cart.id)
                await conn.execute(
                    """
                    UPDATE carts
                    SET status = $2, total_price = 0, updated_at = NOW()
                    WHERE id = $1
                    """,
                    cart.id,
                    CartStatus.CONVERTED.value
                )

                logger.info(
                    "order_created_from_cart",
                    order_id=row["document_id"],
                    cart_id=cart.document_id,
                    items=len(items),
                    total_price=total_price
                )
                return _order_from_row(row)

        except Exception as e:
            logger.error("order_create_from_cart_failed", error=str(e), cart_id=cart.document_id)
            raise

    async def get_order(self, document_id: str) -> Optional[OrderDB]:
        """Get order by document id."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {ORDER_COLUMNS} FROM orders WHERE document_id = $1",
                    document_id
                )
                return _order_from_row(row) if row else None

        except Exception as e:
            logger.error("order_get_failed", error=str(e), document_id=document_id)
            raise

    async def list_orders(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 25,
        offset: int = 0
    ) -> Tuple[List[OrderDB], int]:
        """
        List orders newest first.

        Args:
            user_id: Restrict to one customer
            status: Restrict to one status
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (orders, total count)
        """
        try:
            async with self.pool.acquire() as conn:
                where_clauses = []
                params: List[Any] = []
                param_count = 1

                if user_id is not None:
                    where_clauses.append(f"user_id = ${param_count}")
                    params.append(user_id)
                    param_count += 1

                if status is not None:
                    where_clauses.append(f"status = ${param_count}")
                    params.append(status)
                    param_count += 1

                where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""

                total = await conn.fetchval(f"SELECT COUNT(*) FROM orders {where_sql}", *params)

                rows = await conn.fetch(
                    f"""
                    SELECT {ORDER_COLUMNS}
                    FROM orders
                    {where_sql}
                    ORDER BY created_at DESC, id DESC
                    LIMIT ${param_count} OFFSET ${param_count + 1}
                    """,
                    *params,
                    limit,
                    offset
                )
                return [_order_from_row(row) for row in rows], total

        except Exception as e:
            logger.error("order_list_failed", error=str(e))
            raise

    async def update_order(self, order_id: int, **fields: Any) -> Optional[OrderDB]:
        """
        Update selected order columns.

        Args:
            order_id: Order primary key
            **fields: Column values; unknown columns are rejected

        Returns:
            Updated order or None if not found
        """
        unknown = set(fields) - UPDATABLE_ORDER_FIELDS
        if unknown:
            raise ValueError(f"Cannot update order fields: {sorted(unknown)}")
        if not fields:
            raise ValueError("No order fields to update")

        assignments = []
        params: List[Any] = [order_id]
        for name, value in fields.items():
            params.append(value)
            assignments.append(f"{name} = ${len(params)}")

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE orders
                    SET {', '.join(assignments)}, updated_at = NOW()
                    WHERE id = $1
                    RETURNING {ORDER_COLUMNS}
                    """,
                    *params
                )
                if row and "status" in fields:
                    logger.info("order_status_updated", order_id=row["document_id"], status=fields["status"])
                return _order_from_row(row) if row else None

        except Exception as e:
            logger.error("order_update_failed", error=str(e), order_id=order_id)
            raise

    async def delete_order(self, order_id: int) -> bool:
        """Delete an order and, by cascade, its items."""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute("DELETE FROM orders WHERE id = $1", order_id)
                return result.split()[-1] != "0"

        except Exception as e:
            logger.error("order_delete_failed", error=str(e), order_id=order_id)
            raise

    async def order_statistics(self) -> Dict[str, Any]:
        """Order count, revenue and per-status breakdown."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT status, COUNT(*) AS count, COALESCE(SUM(total_price), 0) AS revenue
                    FROM orders
                    GROUP BY status
                    """
                )
                breakdown = {row["status"]: row["count"] for row in rows}
                return {
                    "total_orders": sum(breakdown.values()),
                    "total_revenue": float(sum(row["revenue"] for row in rows)),
                    "status_breakdown": breakdown,
                }

        except Exception as e:
            logger.error("order_statistics_failed", error=str(e))
            raise

    # ========================================================================
    # Ordered Items
    # ========================================================================

    async def list_items(self, order_id: int) -> List[OrderedItemDB]:
        """List the items of an order."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"{ORDERED_ITEM_SELECT} WHERE oi.order_id = $1 ORDER BY oi.id ASC",
                    order_id
                )
                return [OrderedItemDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("ordered_items_list_failed", error=str(e), order_id=order_id)
            raise

    async def get_item(self, document_id: str) -> Optional[OrderedItemDB]:
        """Get ordered item by document id."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(f"{ORDERED_ITEM_SELECT} WHERE oi.document_id = $1", document_id)
                return OrderedItemDB(**dict(row)) if row else None

        except Exception as e:
            logger.error("ordered_item_get_failed", error=str(e), document_id=document_id)
            raise

    async def update_fulfillment(
        self,
        item_id: int,
        fulfillment_status: str,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Optional[OrderedItemDB]:
        """Set fulfillment status; tracking number and notes are kept when not given."""
        try:
            async with self.pool.acquire() as conn:
                document_id = await conn.fetchval(
                    """
                    UPDATE ordered_items
                    SET fulfillment_status = $2,
                        tracking_number = COALESCE($3, tracking_number),
                        fulfillment_notes = COALESCE($4, fulfillment_notes),
                        updated_at = NOW()
                    WHERE id = $1
                    RETURNING document_id
                    """,
                    item_id,
                    fulfillment_status,
                    tracking_number,
                    notes
                )
                if document_id is None:
                    return None
                row = await conn.fetchrow(f"{ORDERED_ITEM_SELECT} WHERE oi.document_id = $1", document_id)
                logger.info("fulfillment_updated", item_id=document_id, status=fulfillment_status)
                return OrderedItemDB(**dict(row))

        except Exception as e:
            logger.error("fulfillment_update_failed", error=str(e), item_id=item_id)
            raise

    async def list_items_by_fulfillment(self, statuses: Sequence[str]) -> List[OrderedItemDB]:
        """Ordered items in any of the given fulfillment statuses, oldest first."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    {ORDERED_ITEM_SELECT}
                    WHERE oi.fulfillment_status = ANY($1::text[])
                    ORDER BY oi.created_at ASC, oi.id ASC
                    """,
                    list(statuses)
                )
                return [OrderedItemDB(**dict(row)) for row in rows]

        except Exception as e:
            logger.error("fulfillment_list_failed", error=str(e))
            raise

    async def ordered_item_statistics(self) -> Dict[str, Any]:
        """Item count, quantity, revenue and per-fulfillment-status counts."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT fulfillment_status,
                           COUNT(*) AS count,
                           COALESCE(SUM(quantity), 0) AS quantity,
                           COALESCE(SUM(total_price), 0) AS revenue
                    FROM ordered_items
                    GROUP BY fulfillment_status
                    """
                )
                return {
                    "total_items": sum(row["count"] for row in rows),
                    "total_quantity": int(sum(row["quantity"] for row in rows)),
                    "total_revenue": float(sum(row["revenue"] for row in rows)),
                    "status_breakdown": {row["fulfillment_status"]: row["count"] for row in rows},
                }

        except Exception as e:
            logger.error("ordered_item_statistics_failed", error=str(e))
            raise
