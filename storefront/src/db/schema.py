"""
Schema bootstrap.

Compiles the declarative table definitions to PostgreSQL DDL and applies
them over an asyncpg pool. Statements use IF NOT EXISTS so the bootstrap
can run on every start.
"""

from typing import List

import asyncpg
import structlog
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from storefront.src.models.tables import Base

logger = structlog.get_logger(__name__)


def schema_statements() -> List[str]:
    """Return CREATE TABLE / CREATE INDEX statements in dependency order."""
    dialect = postgresql.dialect()
    statements = []
    for table in Base.metadata.sorted_tables:
        statements.append(
            str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip()
        )
        for index in sorted(table.indexes, key=lambda idx: idx.name):
            statements.append(
                str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip()
            )
    return statements


async def init_schema(pool: asyncpg.Pool) -> int:
    """
    Create missing tables and indexes.

    Args:
        pool: asyncpg connection pool

    Returns:
        Number of statements executed
    """
    statements = schema_statements()
    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                for statement in statements:
                    await conn.execute(statement)
    except Exception as e:
        logger.error("schema_init_failed", error=str(e))
        raise

    logger.info("schema_initialized", statements=len(statements))
    return len(statements)
