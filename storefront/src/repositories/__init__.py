"""asyncpg repositories for storefront records."""
