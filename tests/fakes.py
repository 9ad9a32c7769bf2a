"""
In-memory test doubles for the asyncpg repositories and the Stripe gateway.

The fakes keep the same method signatures and return the same models as
the real classes, so services can be exercised without PostgreSQL or
network access.
"""

import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from storefront.src.exceptions import ConflictError
from storefront.src.models.cart import CartDB, CartItemDB, CartStatus
from storefront.src.models.catalog import ArtistDB, ArtworkDB, ArtworkFilter, PaperTypeDB
from storefront.src.models.order import OrderDB, OrderedItemDB
from storefront.src.models.wishlist import WishlistDB
from storefront.src.services import pricing


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _doc_id() -> str:
    return str(uuid.uuid4())


# ============================================================================
# CATALOG
# ============================================================================


class FakeCatalogRepository:
    """Catalog repository backed by dictionaries."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.artists: Dict[int, ArtistDB] = {}
        self.artworks: Dict[int, ArtworkDB] = {}
        self.paper_types: Dict[int, PaperTypeDB] = {}
        self.usage: Dict[int, int] = {}

    def add_artist(self, name: str = "Hokusai", featured: bool = False) -> ArtistDB:
        artist = ArtistDB(
            id=next(self._ids),
            document_id=_doc_id(),
            name=name,
            featured=featured,
            published_at=_now()
        )
        self.artists[artist.id] = artist
        return artist

    def add_artwork(
        self,
        artname: str = "The Great Wave",
        artist: Optional[ArtistDB] = None,
        base_price: float = 0.05,
        popularity: int = 0,
        published: bool = True,
        image: Optional[str] = "https://cdn.example.com/wave.jpg"
    ) -> ArtworkDB:
        artwork = ArtworkDB(
            id=next(self._ids),
            document_id=_doc_id(),
            artname=artname,
            artist_id=artist.id if artist else None,
            artist_name=artist.name if artist else None,
            artimage_url=image,
            base_price_per_cm_square=base_price,
            popularityscore=popularity,
            created_at=_now(),
            published_at=_now() if published else None
        )
        self.artworks[artwork.id] = artwork
        return artwork

    def add_paper_type(
        self,
        name: str = "Hahnemühle Photo Rag",
        price_per_cm_square: float = 0.2,
        multiplier: float = 1.5
    ) -> PaperTypeDB:
        paper = PaperTypeDB(
            id=next(self._ids),
            document_id=_doc_id(),
            paper_names=name,
            paper_price_per_cm_square=price_per_cm_square,
            price_multiplier=multiplier
        )
        self.paper_types[paper.id] = paper
        return paper

    def _published(self) -> List[ArtworkDB]:
        return [a for a in self.artworks.values() if a.published_at is not None]

    async def list_artworks(
        self,
        filters: ArtworkFilter,
        limit: int,
        offset: int = 0
    ) -> Tuple[List[ArtworkDB], int]:
        rows = self._published() if filters.published_only else list(self.artworks.values())
        if filters.search:
            needle = filters.search.lower()
            rows = [
                a for a in rows
                if needle in a.artname.lower() or needle in (a.artist_name or "").lower()
            ]
        if filters.min_price is not None:
            rows = [a for a in rows if a.base_price_per_cm_square >= filters.min_price]
        if filters.max_price is not None:
            rows = [a for a in rows if a.base_price_per_cm_square <= filters.max_price]
        if filters.min_popularity is not None:
            rows = [a for a in rows if a.popularityscore >= filters.min_popularity]
        if filters.max_popularity is not None:
            rows = [a for a in rows if a.popularityscore <= filters.max_popularity]
        rows.sort(key=lambda a: a.popularityscore, reverse=filters.sort_desc)
        return rows[offset:offset + limit], len(rows)

    async def get_artwork(self, document_id: str) -> Optional[ArtworkDB]:
        return next((a for a in self.artworks.values() if a.document_id == document_id), None)

    async def get_artwork_by_id(self, artwork_id: int) -> Optional[ArtworkDB]:
        return self.artworks.get(artwork_id)

    async def list_popular_artworks(self, limit: int, min_popularity: int = 1) -> List[ArtworkDB]:
        rows = [a for a in self._published() if a.popularityscore >= min_popularity]
        rows.sort(key=lambda a: a.popularityscore, reverse=True)
        return rows[:limit]

    async def list_recent_artworks(self, limit: int) -> List[ArtworkDB]:
        rows = sorted(self._published(), key=lambda a: a.id, reverse=True)
        return rows[:limit]

    async def list_artworks_by_artists(
        self,
        artist_ids: Sequence[int],
        exclude_ids: Sequence[int],
        limit: int
    ) -> List[ArtworkDB]:
        rows = [
            a for a in self._published()
            if a.artist_id in artist_ids and a.id not in exclude_ids
        ]
        rows.sort(key=lambda a: a.popularityscore, reverse=True)
        return rows[:limit]

    async def adjust_popularity(self, artwork_id: int, delta: int) -> Optional[int]:
        artwork = self.artworks.get(artwork_id)
        if artwork is None:
            return None
        score = max(artwork.popularityscore + delta, 0)
        self.artworks[artwork_id] = artwork.model_copy(update={"popularityscore": score})
        return score

    async def artwork_statistics(self) -> Dict[str, Any]:
        published = self._published()
        prices = [a.base_price_per_cm_square for a in self.artworks.values()]
        return {
            "total": len(self.artworks),
            "published": len(published),
            "average_price": sum(prices) / len(prices) if prices else 0.0,
        }

    async def list_paper_types(self) -> List[PaperTypeDB]:
        return sorted(self.paper_types.values(), key=lambda p: p.paper_names)

    async def get_paper_type(self, document_id: str) -> Optional[PaperTypeDB]:
        return next((p for p in self.paper_types.values() if p.document_id == document_id), None)

    async def paper_type_usage(self) -> Dict[int, int]:
        return dict(self.usage)

    async def list_artists(self, limit: int, offset: int = 0) -> Tuple[List[ArtistDB], int]:
        rows = sorted(self.artists.values(), key=lambda a: a.name)
        return rows[offset:offset + limit], len(rows)

    async def list_featured_artists(self, limit: int) -> List[ArtistDB]:
        return [a for a in self.artists.values() if a.featured][:limit]

    async def get_artist(self, document_id: str) -> Optional[ArtistDB]:
        return next((a for a in self.artists.values() if a.document_id == document_id), None)


# ============================================================================
# CARTS
# ============================================================================


class FakeCartRepository:
    """Cart repository backed by dictionaries."""

    def __init__(self, catalog: FakeCatalogRepository):
        self._ids = itertools.count(1000)
        self.catalog = catalog
        self.carts: Dict[int, CartDB] = {}
        self.items: Dict[int, CartItemDB] = {}

    async def get_active_cart(self, user_id: str) -> Optional[CartDB]:
        return next(
            (
                c for c in self.carts.values()
                if c.user_id == user_id and c.status != CartStatus.CONVERTED.value
            ),
            None
        )

    async def create_cart(self, user_id: str) -> CartDB:
        cart = CartDB(id=next(self._ids), document_id=_doc_id(), user_id=user_id, created_at=_now())
        self.carts[cart.id] = cart
        return cart

    async def get_cart(self, document_id: str) -> Optional[CartDB]:
        return next((c for c in self.carts.values() if c.document_id == document_id), None)

    async def update_total(self, cart_id: int, total_price: float) -> CartDB:
        cart = self.carts[cart_id].model_copy(update={"total_price": total_price})
        self.carts[cart_id] = cart
        return cart

    async def list_items(self, cart_id: int) -> List[CartItemDB]:
        return [i for i in self.items.values() if i.cart_id == cart_id]

    async def get_item(self, document_id: str) -> Optional[CartItemDB]:
        return next((i for i in self.items.values() if i.document_id == document_id), None)

    async def find_matching_item(
        self,
        cart_id: int,
        art_id: int,
        paper_type_id: Optional[int],
        width: float,
        height: float
    ) -> Optional[CartItemDB]:
        for item in self.items.values():
            if (
                item.cart_id == cart_id
                and item.art_id == art_id
                and item.paper_type_id == paper_type_id
                and item.width == width
                and item.height == height
            ):
                return item
        return None

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
        artwork = self.catalog.artworks.get(art_id)
        item = CartItemDB(
            id=next(self._ids),
            document_id=_doc_id(),
            cart_id=cart_id,
            art_id=art_id,
            art_document_id=artwork.document_id if artwork else None,
            paper_type_id=paper_type_id,
            arttitle=arttitle,
            artistname=artistname,
            width=width,
            height=height,
            price=price,
            quantity=quantity,
            total_price=pricing.line_total(price, quantity)
        )
        self.items[item.id] = item
        return item

    async def update_item_quantity(self, item_id: int, quantity: int) -> CartItemDB:
        item = self.items[item_id]
        item = item.model_copy(update={
            "quantity": quantity,
            "total_price": pricing.line_total(item.price, quantity)
        })
        self.items[item_id] = item
        return item

    async def delete_item(self, item_id: int) -> bool:
        return self.items.pop(item_id, None) is not None

    async def clear_items(self, cart_id: int) -> int:
        doomed = [i.id for i in self.items.values() if i.cart_id == cart_id]
        for item_id in doomed:
            del self.items[item_id]
        self.carts[cart_id] = self.carts[cart_id].model_copy(update={"total_price": 0.0})
        return len(doomed)


# ============================================================================
# ORDERS
# ============================================================================


class FakeOrderRepository:
    """Order repository backed by dictionaries; checkout mutates the cart fake."""

    def __init__(self, carts: FakeCartRepository):
        self._ids = itertools.count(5000)
        self.carts = carts
        self.orders: Dict[int, OrderDB] = {}
        self.items: Dict[int, OrderedItemDB] = {}

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
        order = OrderDB(
            id=next(self._ids),
            document_id=_doc_id(),
            user_id=cart.user_id,
            user_email=user_email,
            total_price=total_price,
            shipping_cost=shipping_cost,
            address=address,
            stripe_payment_id=stripe_payment_id,
            created_at=_now()
        )
        self.orders[order.id] = order
        for item in items:
            ordered = OrderedItemDB(
                id=next(self._ids),
                document_id=_doc_id(),
                order_id=order.id,
                order_document_id=order.document_id,
                art_id=item.art_id,
                paper_type_id=item.paper_type_id,
                arttitle=item.arttitle,
                artistname=item.artistname,
                width=item.width,
                height=item.height,
                price=item.price,
                quantity=item.quantity,
                total_price=item.total_price
            )
            self.items[ordered.id] = ordered
        await self.carts.clear_items(cart.id)
        self.carts.carts[cart.id] = self.carts.carts[cart.id].model_copy(
            update={"status": CartStatus.CONVERTED.value, "total_price": 0.0}
        )
        return order

    async def get_order(self, document_id: str) -> Optional[OrderDB]:
        return next((o for o in self.orders.values() if o.document_id == document_id), None)

    async def list_orders(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 25,
        offset: int = 0
    ) -> Tuple[List[OrderDB], int]:
        rows = [
            o for o in self.orders.values()
            if (user_id is None or o.user_id == user_id) and (status is None or o.status == status)
        ]
        rows.sort(key=lambda o: o.id, reverse=True)
        return rows[offset:offset + limit], len(rows)

    async def update_order(self, order_id: int, **fields: Any) -> Optional[OrderDB]:
        order = self.orders.get(order_id)
        if order is None:
            return None
        order = order.model_copy(update=fields)
        self.orders[order_id] = order
        return order

    async def delete_order(self, order_id: int) -> bool:
        for item_id in [i.id for i in self.items.values() if i.order_id == order_id]:
            del self.items[item_id]
        return self.orders.pop(order_id, None) is not None

    async def order_statistics(self) -> Dict[str, Any]:
        breakdown: Dict[str, int] = {}
        for order in self.orders.values():
            breakdown[order.status] = breakdown.get(order.status, 0) + 1
        return {
            "total_orders": len(self.orders),
            "total_revenue": sum(o.total_price for o in self.orders.values()),
            "status_breakdown": breakdown,
        }

    async def list_items(self, order_id: int) -> List[OrderedItemDB]:
        return [i for i in self.items.values() if i.order_id == order_id]

    async def get_item(self, document_id: str) -> Optional[OrderedItemDB]:
        return next((i for i in self.items.values() if i.document_id == document_id), None)

    async def update_fulfillment(
        self,
        item_id: int,
        fulfillment_status: str,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Optional[OrderedItemDB]:
        item = self.items.get(item_id)
        if item is None:
            return None
        update: Dict[str, Any] = {"fulfillment_status": fulfillment_status}
        if tracking_number is not None:
            update["tracking_number"] = tracking_number
        if notes is not None:
            update["fulfillment_notes"] = notes
        item = item.model_copy(update=update)
        self.items[item_id] = item
        return item

    async def list_items_by_fulfillment(self, statuses: Sequence[str]) -> List[OrderedItemDB]:
        return [i for i in self.items.values() if i.fulfillment_status in statuses]

    async def ordered_item_statistics(self) -> Dict[str, Any]:
        breakdown: Dict[str, int] = {}
        for item in self.items.values():
            breakdown[item.fulfillment_status] = breakdown.get(item.fulfillment_status, 0) + 1
        return {
            "total_items": len(self.items),
            "total_quantity": sum(i.quantity for i in self.items.values()),
            "total_revenue": sum(i.total_price for i in self.items.values()),
            "status_breakdown": breakdown,
        }


# ============================================================================
# WISHLISTS
# ============================================================================


class FakeWishlistRepository:
    """Wishlist repository backed by dictionaries."""

    def __init__(self, catalog: FakeCatalogRepository):
        self._ids = itertools.count(9000)
        self.catalog = catalog
        self.wishlists: Dict[int, WishlistDB] = {}
        self.entries: Dict[int, List[int]] = {}

    async def get_by_user(self, user_id: str) -> Optional[WishlistDB]:
        return next((w for w in self.wishlists.values() if w.user_id == user_id), None)

    async def create(self, user_id: str) -> WishlistDB:
        existing = await self.get_by_user(user_id)
        if existing is not None:
            return existing
        wishlist = WishlistDB(id=next(self._ids), document_id=_doc_id(), user_id=user_id)
        self.wishlists[wishlist.id] = wishlist
        self.entries[wishlist.id] = []
        return wishlist

    async def list_artworks(self, wishlist_id: int) -> List[ArtworkDB]:
        rows = [self.catalog.artworks[art_id] for art_id in self.entries.get(wishlist_id, [])]
        rows.sort(key=lambda a: a.popularityscore, reverse=True)
        return rows

    async def has_artwork(self, wishlist_id: int, art_id: int) -> bool:
        return art_id in self.entries.get(wishlist_id, [])

    async def add_artwork(self, wishlist_id: int, art_id: int) -> None:
        if art_id in self.entries[wishlist_id]:
            raise ConflictError("Artwork already in wishlist")
        self.entries[wishlist_id].append(art_id)

    async def remove_artwork(self, wishlist_id: int, art_id: int) -> bool:
        if art_id not in self.entries.get(wishlist_id, []):
            return False
        self.entries[wishlist_id].remove(art_id)
        return True

    async def clear(self, wishlist_id: int) -> int:
        removed = len(self.entries.get(wishlist_id, []))
        self.entries[wishlist_id] = []
        return removed

    async def statistics(self, large_threshold: int = 10) -> Dict[str, Any]:
        sizes = [len(v) for v in self.entries.values()]
        return {
            "total_wishlists": len(self.wishlists),
            "total_items": sum(sizes),
            "active": sum(1 for s in sizes if s > 0),
            "empty": sum(1 for s in sizes if s == 0),
            "large": sum(1 for s in sizes if s > large_threshold),
        }

    async def trends(self, limit: int = 10) -> List[Dict[str, Any]]:
        counts: Dict[int, int] = {}
        for art_ids in self.entries.values():
            for art_id in art_ids:
                counts[art_id] = counts.get(art_id, 0) + 1
        ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:limit]
        return [
            {
                "documentId": self.catalog.artworks[art_id].document_id,
                "artname": self.catalog.artworks[art_id].artname,
                "wishlistCount": count,
            }
            for art_id, count in ranked
        ]


# ============================================================================
# STRIPE
# ============================================================================


class FakeStripeGateway:
    """
    Records calls and returns plain dicts shaped like Stripe objects.

    Set ``fail_with`` or ``invoice_error`` to make calls raise.
    """

    def __init__(self, webhook_secret: Optional[str] = "whsec_test"):
        self.webhook_secret = webhook_secret
        self.mode = "test"
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.intents: Dict[str, Dict[str, Any]] = {}
        self.payment_methods: List[Dict[str, Any]] = []
        self.event: Optional[Dict[str, Any]] = None
        self.fail_with: Optional[Exception] = None
        self.invoice_error: Optional[Exception] = None

    def _record(self, call: str, **kwargs: Any) -> None:
        self.calls.append((call, kwargs))
        if self.fail_with is not None:
            raise self.fail_with

    def called(self, call: str) -> List[Dict[str, Any]]:
        return [kwargs for recorded, kwargs in self.calls if recorded == call]

    async def find_or_create_customer(self, email, name=None, metadata=None, address=None):
        self._record("find_or_create_customer", email=email, name=name, metadata=metadata)
        return {"id": "cus_test", "email": email}

    async def create_payment_intent(
        self,
        amount,
        currency=None,
        customer_id=None,
        metadata=None,
        description=None
    ):
        self._record(
            "create_payment_intent",
            amount=amount,
            currency=currency,
            customer_id=customer_id,
            metadata=metadata
        )
        intent_id = f"pi_{len(self.intents) + 1}"
        intent = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret",
            "amount": amount,
            "currency": currency or "eur",
            "status": "requires_payment_method",
            "metadata": dict(metadata or {}),
            "customer": customer_id,
        }
        self.intents[intent_id] = intent
        return intent

    async def retrieve_payment_intent(self, payment_intent_id):
        self._record("retrieve_payment_intent", payment_intent_id=payment_intent_id)
        return self.intents[payment_intent_id]

    async def confirm_payment_intent(self, payment_intent_id, payment_method_id=None):
        self._record(
            "confirm_payment_intent",
            payment_intent_id=payment_intent_id,
            payment_method_id=payment_method_id
        )
        intent = self.intents[payment_intent_id]
        intent["status"] = "succeeded"
        return intent

    async def refund_payment_intent(self, payment_intent_id, amount=None):
        self._record("refund_payment_intent", payment_intent_id=payment_intent_id, amount=amount)
        return {"id": "re_1", "status": "succeeded", "amount": amount}

    async def create_setup_intent(self, customer_id):
        self._record("create_setup_intent", customer_id=customer_id)
        return {"id": "seti_1", "client_secret": "seti_1_secret"}

    async def list_card_payment_methods(self, customer_id):
        self._record("list_card_payment_methods", customer_id=customer_id)
        return list(self.payment_methods)

    async def detach_payment_method(self, payment_method_id):
        self._record("detach_payment_method", payment_method_id=payment_method_id)
        return {"id": payment_method_id}

    async def default_payment_method(self, customer_id):
        return self.payment_methods[0]["id"] if self.payment_methods else None

    def construct_webhook_event(self, payload, signature):
        self.calls.append(("construct_webhook_event", {"signature": signature}))
        if self.fail_with is not None:
            raise self.fail_with
        return self.event

    async def create_order_invoice(self, customer_id, order, items):
        self.calls.append(("create_order_invoice", {"customer_id": customer_id, "order": order}))
        if self.invoice_error is not None:
            raise self.invoice_error
        return {"id": "in_1", "status": "open"}

    async def ping(self):
        self._record("ping")
        return {"accountId": "acct_1", "mode": self.mode}
