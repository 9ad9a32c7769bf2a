"""
FastAPI dependency injection for database, authentication and services.

Provides injectable dependencies for:
- Database connection pool (asyncpg)
- User authentication (bearer JWT verification)
- Admin authorization
- Repository and service instances
- Shared clients kept on ``app.state`` (Redis, Stripe, object storage)

Tests replace the service dependencies through ``app.dependency_overrides``.
"""

import asyncpg
import structlog
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storefront.src.config import get_settings
from storefront.src.models.auth import CurrentUser
from storefront.src.repositories.cart_repo import CartRepository
from storefront.src.repositories.catalog_repo import CatalogRepository
from storefront.src.repositories.order_repo import OrderRepository
from storefront.src.repositories.wishlist_repo import WishlistRepository
from storefront.src.services.auth_service import AuthService
from storefront.src.services.cart_service import CartService
from storefront.src.services.catalog_service import CatalogService
from storefront.src.services.health_service import HealthService
from storefront.src.services.order_service import OrderService
from storefront.src.services.payment_gateway import StripeGateway
from storefront.src.services.payment_service import PaymentService
from storefront.src.services.webhook_service import WebhookService
from storefront.src.services.wishlist_service import WishlistService

logger = structlog.get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================

_pool: Optional[asyncpg.Pool] = None


async def init_db_pool() -> asyncpg.Pool:
    """
    Initialize database connection pool.

    Should be called during application startup.

    Returns:
        asyncpg connection pool
    """
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.database_pool_size,
            max_size=settings.database_pool_size + settings.database_max_overflow,
            command_timeout=settings.database_pool_timeout
        )

        logger.info(
            "database_pool_initialized",
            pool_size=settings.database_pool_size,
            database=settings.database_url.split("@")[-1]
        )

        return _pool

    except Exception as e:
        logger.error("database_pool_init_failed", error=str(e))
        raise


async def close_db_pool():
    """
    Close database connection pool.

    Should be called during application shutdown.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        logger.info("database_pool_closed")
        _pool = None


def get_db_pool() -> asyncpg.Pool:
    """
    Get database connection pool.

    Raises:
        RuntimeError: If pool is not initialized
    """
    if _pool is None:
        logger.error("database_pool_not_initialized")
        raise RuntimeError(
            "Database pool not initialized. Call init_db_pool() during startup."
        )
    return _pool


# ============================================================================
# AUTHENTICATION DEPENDENCIES
# ============================================================================


@lru_cache()
def get_auth_service() -> AuthService:
    return AuthService()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> CurrentUser:
    """
    Get current authenticated user from the bearer JWT.

    Raises:
        HTTPException: If the token is missing or invalid

    Example:
        @router.get("/me")
        async def me(user: CurrentUser = Depends(get_current_user)):
            return {"id": user.id}
    """
    if not credentials:
        logger.warning("auth_missing_credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication credentials",
            headers={"WWW-Authenticate": "Bearer"}
        )

    current_user = auth_service.get_current_user(credentials.credentials)
    if current_user is None:
        logger.warning("auth_invalid_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    logger.debug("user_authenticated", user_id=current_user.id, roles=current_user.roles)
    return current_user


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """
    Require the configured admin role.

    Raises:
        HTTPException: If user is not admin
    """
    if not current_user.has_role(get_settings().admin_role):
        logger.warning(
            "access_denied_admin_required",
            user_id=current_user.id,
            roles=current_user.roles
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return current_user


# ============================================================================
# REPOSITORY DEPENDENCIES
# ============================================================================


def get_catalog_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> CatalogRepository:
    return CatalogRepository(pool)


def get_cart_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> CartRepository:
    return CartRepository(pool)


def get_order_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> OrderRepository:
    return OrderRepository(pool)


def get_wishlist_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> WishlistRepository:
    return WishlistRepository(pool)


# ============================================================================
# SHARED CLIENTS
# ============================================================================


def get_stripe_gateway(request: Request) -> Optional[StripeGateway]:
    """Stripe gateway built at startup, None when no secret key is configured."""
    return getattr(request.app.state, "stripe", None)


# ============================================================================
# SERVICE DEPENDENCIES
# ============================================================================


def get_catalog_service(
    catalog_repo: CatalogRepository = Depends(get_catalog_repository)
) -> CatalogService:
    return CatalogService(catalog_repo)


def get_cart_service(
    cart_repo: CartRepository = Depends(get_cart_repository),
    catalog_repo: CatalogRepository = Depends(get_catalog_repository),
    order_repo: OrderRepository = Depends(get_order_repository)
) -> CartService:
    return CartService(cart_repo, catalog_repo, order_repo)


def get_order_service(
    order_repo: OrderRepository = Depends(get_order_repository),
    cart_service: CartService = Depends(get_cart_service)
) -> OrderService:
    return OrderService(order_repo, cart_service)


def get_wishlist_service(
    wishlist_repo: WishlistRepository = Depends(get_wishlist_repository),
    catalog_repo: CatalogRepository = Depends(get_catalog_repository)
) -> WishlistService:
    return WishlistService(wishlist_repo, catalog_repo)


def get_payment_service(
    gateway: Optional[StripeGateway] = Depends(get_stripe_gateway),
    cart_service: CartService = Depends(get_cart_service),
    order_service: OrderService = Depends(get_order_service)
) -> PaymentService:
    return PaymentService(gateway, cart_service, order_service)


def get_webhook_service(
    gateway: Optional[StripeGateway] = Depends(get_stripe_gateway),
    order_service: OrderService = Depends(get_order_service)
) -> WebhookService:
    return WebhookService(gateway, order_service)


def get_health_service(request: Request) -> HealthService:
    """Health checks over whatever clients were started; never requires the pool."""
    state = request.app.state
    return HealthService(
        pool=_pool,
        redis=getattr(state, "redis", None),
        storage=getattr(state, "storage", None),
        gateway=getattr(state, "stripe", None)
    )
