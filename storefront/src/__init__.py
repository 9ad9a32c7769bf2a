"""FastAPI service for the art-print storefront.

This package provides REST API endpoints for browsing the artwork catalog,
managing carts and wishlists, placing orders and taking payments through
Stripe.
"""

__version__ = "0.1.0"
