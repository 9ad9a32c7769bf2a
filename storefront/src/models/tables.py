"""
Database table definitions.

SQLAlchemy 2.0 declarative models describing the storefront schema. They
are used to emit DDL (see ``storefront.src.db.schema``); queries run as
raw SQL over asyncpg in the repositories.

Every content table carries an integer primary key, a ``document_id`` used
as the stable external identifier, and created/updated timestamps.
Publishable content also has ``published_at``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all storefront tables."""
    pass


class DocumentMixin:
    """Identifier and timestamp columns shared by all tables."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        nullable=False,
        server_default=text("gen_random_uuid()::text")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP")
    )


# ============================================================================
# Catalog
# ============================================================================


class Artist(DocumentMixin, Base):
    """Artist whose works are sold as prints."""
    __tablename__ = "artists"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    biography: Mapped[Optional[str]] = mapped_column(Text)
    birth_year: Mapped[Optional[int]] = mapped_column(Integer)
    death_year: Mapped[Optional[int]] = mapped_column(Integer)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_artists_name", "name"),
    )


class PaperType(DocumentMixin, Base):
    """Printable paper with its own price per square centimetre."""
    __tablename__ = "paper_types"

    paper_names: Mapped[str] = mapped_column(String(200), nullable=False)
    paper_price_per_cm_square: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), nullable=False, server_default=text("0")
    )
    price_multiplier: Mapped[Decimal] = mapped_column(
        Numeric(6, 3), nullable=False, server_default=text("1")
    )
    description: Mapped[Optional[str]] = mapped_column(Text)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class ArtistsWork(DocumentMixin, Base):
    """Artwork available for printing."""
    __tablename__ = "artists_works"

    artname: Mapped[str] = mapped_column(String(200), nullable=False)
    artist_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("artists.id", ondelete="SET NULL")
    )
    artimage_url: Mapped[Optional[str]] = mapped_column(Text)
    art_thumbnail: Mapped[Optional[str]] = mapped_column(Text)
    original_width: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    original_height: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    base_price_per_cm_square: Mapped[Decimal] = mapped_column(
        Numeric(10, 4), nullable=False, server_default=text("0.5")
    )
    max_size: Mapped[Optional[str]] = mapped_column(String(50))
    popularityscore: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("popularityscore >= 0", name="ck_artists_works_popularity"),
        CheckConstraint("base_price_per_cm_square >= 0", name="ck_artists_works_price"),
        Index("idx_artists_works_artist_id", "artist_id"),
        Index("idx_artists_works_popularity", "popularityscore"),
        Index("idx_artists_works_published_at", "published_at"),
    )


# ============================================================================
# Carts
# ============================================================================


class Cart(DocumentMixin, Base):
    """Shopping cart; one active cart per user."""
    __tablename__ = "carts"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, server_default=text("0")
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=text("'active'")
    )

    __table_args__ = (
        Index("idx_carts_user_status", "user_id", "status"),
    )


class CartItem(DocumentMixin, Base):
    """Configured print inside a cart."""
    __tablename__ = "cart_items"

    cart_id: Mapped[int] = mapped_column(
        ForeignKey("carts.id", ondelete="CASCADE"), nullable=False
    )
    art_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("artists_works.id", ondelete="SET NULL")
    )
    paper_type_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("paper_types.id", ondelete="SET NULL")
    )
    arttitle: Mapped[Optional[str]] = mapped_column(String(200))
    artistname: Mapped[Optional[str]] = mapped_column(String(200))
    width: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    height: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity"),
        Index("idx_cart_items_cart_id", "cart_id"),
    )


# ============================================================================
# Orders
# ============================================================================


class Order(DocumentMixin, Base):
    """Order created from a checked-out cart."""
    __tablename__ = "orders"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_email: Mapped[Optional[str]] = mapped_column(String(255))
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, server_default=text("0")
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=text("'pending'")
    )
    address: Mapped[Optional[dict]] = mapped_column(JSONB)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    stripe_payment_id: Mapped[Optional[str]] = mapped_column(String(255))
    stripe_invoice_id: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (
        Index("idx_orders_user_id", "user_id"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_created_at", "created_at"),
    )


class OrderedItem(DocumentMixin, Base):
    """Snapshot of a cart item at checkout time plus fulfillment state."""
    __tablename__ = "ordered_items"

    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    art_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("artists_works.id", ondelete="SET NULL")
    )
    paper_type_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("paper_types.id", ondelete="SET NULL")
    )
    arttitle: Mapped[Optional[str]] = mapped_column(String(200))
    artistname: Mapped[Optional[str]] = mapped_column(String(200))
    width: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    height: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    fulfillment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=text("'pending'")
    )
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100))
    fulfillment_notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("idx_ordered_items_order_id", "order_id"),
        Index("idx_ordered_items_fulfillment", "fulfillment_status"),
    )


# ============================================================================
# Wishlists
# ============================================================================


class Wishlist(DocumentMixin, Base):
    """Per-user wishlist."""
    __tablename__ = "wishlists"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)


class WishlistArtwork(Base):
    """Membership of an artwork in a wishlist."""
    __tablename__ = "wishlist_artworks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wishlist_id: Mapped[int] = mapped_column(
        ForeignKey("wishlists.id", ondelete="CASCADE"), nullable=False
    )
    art_id: Mapped[int] = mapped_column(
        ForeignKey("artists_works.id", ondelete="CASCADE"), nullable=False
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        UniqueConstraint("wishlist_id", "art_id", name="uq_wishlist_artworks_pair"),
        Index("idx_wishlist_artworks_art_id", "art_id"),
    )
