"""
Shared pytest fixtures.

The environment is pinned before any storefront module is imported so the
cached settings, the rate limiter and the module-level app all see the test
configuration. Repositories are replaced by the in-memory fakes from
``tests.fakes``; no database, Redis or Stripe account is needed.
"""

import os

os.environ["STOREFRONT_ENVIRONMENT"] = "test"
os.environ["STOREFRONT_RATE_LIMIT_ENABLED"] = "false"
os.environ["STOREFRONT_CACHE_ENABLED"] = "false"
os.environ["STOREFRONT_TRACING_ENABLED"] = "false"
os.environ["STOREFRONT_LOG_FORMAT"] = "text"
os.environ["STOREFRONT_LOG_LEVEL"] = "WARNING"
os.environ["STOREFRONT_JWT_SECRET_KEY"] = "test-secret-key-for-storefront-tests-0123456789"
os.environ.pop("STOREFRONT_STRIPE_SECRET_KEY", None)
os.environ.pop("STOREFRONT_JWT_AUDIENCE", None)
os.environ.pop("STOREFRONT_JWT_ISSUER", None)

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from storefront.src import dependencies
from storefront.src.config import clear_settings_cache, get_settings
from storefront.src.models.auth import CurrentUser
from storefront.src.services.cart_service import CartService
from storefront.src.services.catalog_service import CatalogService
from storefront.src.services.order_service import OrderService
from storefront.src.services.payment_service import PaymentService
from storefront.src.services.webhook_service import WebhookService
from storefront.src.services.wishlist_service import WishlistService
from tests.fakes import (
    FakeCartRepository,
    FakeCatalogRepository,
    FakeOrderRepository,
    FakeStripeGateway,
    FakeWishlistRepository,
)


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Each test starts from the pinned environment."""
    clear_settings_cache()
    dependencies.get_auth_service.cache_clear()
    yield
    clear_settings_cache()
    dependencies.get_auth_service.cache_clear()


@pytest.fixture
def settings():
    return get_settings()


# ============================================================================
# USERS AND TOKENS
# ============================================================================


@pytest.fixture
def customer() -> CurrentUser:
    return CurrentUser(id="42", email="jane@example.com", username="jane", roles=["authenticated"])


@pytest.fixture
def other_customer() -> CurrentUser:
    return CurrentUser(id="77", email="max@example.com", username="max", roles=["authenticated"])


@pytest.fixture
def admin() -> CurrentUser:
    return CurrentUser(id="1", email="staff@example.com", username="staff", roles=["authenticated", "admin"])


def make_token(
    sub: Optional[str] = "42",
    roles: Optional[List[str]] = None,
    expires_in: timedelta = timedelta(minutes=30),
    secret: Optional[str] = None,
    **claims: Any
) -> str:
    """Sign a token the way the identity provider does."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "roles": roles if roles is not None else ["authenticated"],
        "iat": now,
        "exp": now + expires_in,
        **claims,
    }
    if sub is not None:
        payload["sub"] = sub
    return jwt.encode(
        payload,
        secret or os.environ["STOREFRONT_JWT_SECRET_KEY"],
        algorithm="HS256"
    )


@pytest.fixture
def customer_headers(customer) -> Dict[str, str]:
    token = make_token(customer.id, email=customer.email, username=customer.username)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_headers(other_customer) -> Dict[str, str]:
    token = make_token(other_customer.id, email=other_customer.email, username=other_customer.username)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin) -> Dict[str, str]:
    token = make_token(admin.id, roles=admin.roles, email=admin.email, username=admin.username)
    return {"Authorization": f"Bearer {token}"}


# ============================================================================
# REPOSITORIES AND SEED DATA
# ============================================================================


@pytest.fixture
def catalog_repo() -> FakeCatalogRepository:
    return FakeCatalogRepository()


@pytest.fixture
def cart_repo(catalog_repo) -> FakeCartRepository:
    return FakeCartRepository(catalog_repo)


@pytest.fixture
def order_repo(cart_repo) -> FakeOrderRepository:
    return FakeOrderRepository(cart_repo)


@pytest.fixture
def wishlist_repo(catalog_repo) -> FakeWishlistRepository:
    return FakeWishlistRepository(catalog_repo)


@pytest.fixture
def artist(catalog_repo):
    return catalog_repo.add_artist("Katsushika Hokusai", featured=True)


@pytest.fixture
def artwork(catalog_repo, artist):
    return catalog_repo.add_artwork("The Great Wave", artist=artist, base_price=0.05, popularity=120)


@pytest.fixture
def paper_type(catalog_repo):
    return catalog_repo.add_paper_type("Hahnemühle Photo Rag", price_per_cm_square=0.2, multiplier=1.5)


# ============================================================================
# SERVICES
# ============================================================================


@pytest.fixture
def gateway() -> FakeStripeGateway:
    return FakeStripeGateway()


@pytest.fixture
def catalog_service(catalog_repo) -> CatalogService:
    return CatalogService(catalog_repo)


@pytest.fixture
def cart_service(cart_repo, catalog_repo, order_repo) -> CartService:
    return CartService(cart_repo, catalog_repo, order_repo)


@pytest.fixture
def order_service(order_repo, cart_service) -> OrderService:
    return OrderService(order_repo, cart_service)


@pytest.fixture
def wishlist_service(wishlist_repo, catalog_repo) -> WishlistService:
    return WishlistService(wishlist_repo, catalog_repo)


@pytest.fixture
def payment_service(gateway, cart_service, order_service) -> PaymentService:
    return PaymentService(gateway, cart_service, order_service)


@pytest.fixture
def webhook_service(gateway, order_service) -> WebhookService:
    return WebhookService(gateway, order_service)


# ============================================================================
# APPLICATION
# ============================================================================


@pytest.fixture
def stripe_gateway(gateway) -> Optional[FakeStripeGateway]:
    """Gateway seen by the app; override with None to simulate missing keys."""
    return gateway


@pytest.fixture
def app(settings, catalog_repo, cart_repo, order_repo, wishlist_repo, stripe_gateway):
    """Application wired to the in-memory repositories."""
    from storefront.src.main import create_app

    application = create_app(settings)
    application.dependency_overrides[dependencies.get_catalog_repository] = lambda: catalog_repo
    application.dependency_overrides[dependencies.get_cart_repository] = lambda: cart_repo
    application.dependency_overrides[dependencies.get_order_repository] = lambda: order_repo
    application.dependency_overrides[dependencies.get_wishlist_repository] = lambda: wishlist_repo
    application.dependency_overrides[dependencies.get_stripe_gateway] = lambda: stripe_gateway
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """Client without lifespan; nothing connects to PostgreSQL or Redis."""
    return TestClient(app)
