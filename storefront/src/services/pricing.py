"""
Pricing and presentation rules.

Stateless functions over already-fetched records. Prices are per square
centimetre of print area; money is rounded half-up to cents.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from storefront.src.models.catalog import ArtworkDB, PaperTypeDB
from storefront.src.models.cart import DEFAULT_PRINT_HEIGHT, DEFAULT_PRINT_WIDTH

STANDARD_SIZES = [(20, 30), (30, 40), (40, 50), (50, 70), (60, 80), (70, 100)]

MIN_PRINT_AREA = 100
MAX_PRINT_AREA = 10000
MAX_LINE_QUANTITY = 50

BULK_DISCOUNTS = [(5, 0.10), (3, 0.05)]

POPULARITY_TIERS = [
    (100, "trending"),
    (50, "popular"),
    (20, "emerging"),
    (5, "discovered"),
]

PAPER_PRICE_CATEGORIES = [
    (0.10, "economy"),
    (0.25, "standard"),
    (0.50, "premium"),
    (1.00, "luxury"),
]


def round_money(amount: float) -> float:
    """Round to cents, half away from zero."""
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_minor_units(amount: float) -> int:
    """Convert a major-unit amount to integer cents."""
    return int(Decimal(str(amount)).scaleb(2).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> float:
    return round_money(amount / 100)


def artwork_price(
    base_price_per_cm_square: float,
    width: float,
    height: float,
    paper_multiplier: float = 1.0,
) -> float:
    """
    Unit price of a print.

    Args:
        base_price_per_cm_square: Artwork base price
        width: Print width in cm
        height: Print height in cm
        paper_multiplier: Paper type multiplier (1 when no paper chosen)

    Returns:
        Price rounded to cents
    """
    return round_money(base_price_per_cm_square * width * height * (paper_multiplier or 1.0))


def paper_multiplier(paper_type: Optional[PaperTypeDB]) -> float:
    if paper_type is None or not paper_type.price_multiplier:
        return 1.0
    return paper_type.price_multiplier


def price_breakdown(
    artwork: ArtworkDB,
    width: float,
    height: float,
    paper_type: Optional[PaperTypeDB] = None,
) -> Dict[str, Any]:
    """Full quote for an artwork at a given size and paper."""
    multiplier = paper_multiplier(paper_type)
    base = artwork.base_price_per_cm_square * width * height
    return {
        "basePrice": round_money(base),
        "paperTypeMultiplier": multiplier,
        "finalPrice": round_money(base * multiplier),
        "dimensions": {
            "width": width,
            "height": height,
            "area": width * height,
        },
        "artwork": {
            "documentId": artwork.document_id,
            "artname": artwork.artname,
            "base_price_per_cm_square": artwork.base_price_per_cm_square,
        },
        "paperType": (
            {
                "documentId": paper_type.document_id,
                "name": paper_type.paper_names,
            }
            if paper_type
            else None
        ),
    }


def paper_cost(paper_type: PaperTypeDB, width: float, height: float) -> Dict[str, Any]:
    """Cost of the paper alone for a print of the given size."""
    area = width * height
    cost = round_money(area * paper_type.paper_price_per_cm_square)
    return {
        "basePaperCost": cost,
        "totalCost": cost,
        "paperType": {
            "id": paper_type.id,
            "documentId": paper_type.document_id,
            "name": paper_type.paper_names or "Unknown",
            "pricePerCmSquare": paper_type.paper_price_per_cm_square,
        },
        "dimensions": {"width": width, "height": height, "area": area},
    }


def estimated_price(artwork: ArtworkDB) -> float:
    """Price at the standard 30x40 cm size, no paper surcharge."""
    return artwork_price(
        artwork.base_price_per_cm_square,
        DEFAULT_PRINT_WIDTH,
        DEFAULT_PRINT_HEIGHT,
    )


def popularity_tier(score: Optional[int]) -> str:
    score = score or 0
    for threshold, tier in POPULARITY_TIERS:
        if score >= threshold:
            return tier
    return "new"


def price_category(price_per_cm_square: Optional[float]) -> str:
    """Bucket a paper's price per cm² into a display category."""
    price = price_per_cm_square or 0
    if price <= 0:
        return "invalid"
    for ceiling, category in PAPER_PRICE_CATEGORIES:
        if price < ceiling:
            return category
    return "ultra-premium"


def _format_number(value: Optional[float]) -> str:
    value = value or 0
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_dimensions(width: Optional[float], height: Optional[float], unit: str = "cm") -> str:
    return f"{_format_number(width)}x{_format_number(height)}{unit}"


def format_money(amount: Optional[float]) -> str:
    return f"€{(amount or 0):.2f}"


def line_total(price: Optional[float], quantity: Optional[int]) -> float:
    return round_money((price or 0) * (quantity or 1))


def bulk_savings(unit_price: float, quantity: int) -> float:
    """Discount shown for larger quantities of the same print."""
    for min_quantity, rate in BULK_DISCOUNTS:
        if quantity >= min_quantity:
            return round_money(unit_price * quantity * rate)
    return 0.0


def is_custom_size(width: float, height: float) -> bool:
    """True unless the size is a standard format in either orientation."""
    for w, h in STANDARD_SIZES:
        if (width == w and height == h) or (width == h and height == w):
            return False
    return True


def is_available(artwork: ArtworkDB) -> bool:
    """An artwork can be ordered once published, priced, named and imaged."""
    return bool(
        artwork.published_at
        and artwork.base_price_per_cm_square > 0
        and artwork.artname
        and artwork.artimage_url
    )


def validate_cart_item(width: float, height: float, quantity: int) -> List[str]:
    """
    Check a print configuration.

    Returns:
        List of human-readable problems; empty when valid
    """
    errors = []
    if width <= 0 or height <= 0:
        errors.append("Width and height must be positive")
    else:
        area = width * height
        if area < MIN_PRINT_AREA:
            errors.append(f"Print area must be at least {MIN_PRINT_AREA} cm²")
        if area > MAX_PRINT_AREA:
            errors.append(f"Print area must not exceed {MAX_PRINT_AREA} cm²")
    if quantity < 1:
        errors.append("Quantity must be at least 1")
    if quantity > MAX_LINE_QUANTITY:
        errors.append(f"Quantity must not exceed {MAX_LINE_QUANTITY}")
    return errors


def cart_total(items: Iterable[Any]) -> float:
    """Sum of line totals, falling back to price * quantity per line."""
    total = 0.0
    for item in items:
        if item.total_price is not None:
            total += item.total_price
        else:
            total += (item.price or 0) * (item.quantity or 1)
    return round_money(total)


def wishlist_value(artworks: Iterable[ArtworkDB]) -> float:
    return round_money(sum(estimated_price(artwork) for artwork in artworks))


def days_since(timestamp: Optional[datetime], now: Optional[datetime] = None) -> int:
    if timestamp is None:
        return 0
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return max((now - timestamp).days, 0)
