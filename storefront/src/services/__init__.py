"""Business services: catalog, carts, orders, wishlists, payments and health."""
