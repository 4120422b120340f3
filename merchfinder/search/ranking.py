import re
from typing import Iterable, List, Optional, Tuple

from ..models import Listing, PriceRange, SearchFilters, SearchStats

_NON_DIGIT = re.compile(r"[^\d]")


def price_value(price: Optional[str]) -> Optional[int]:
    """Numeric value of a formatted price such as "¥5,000" or "1000円"."""
    if not price:
        return None
    digits = _NON_DIGIT.sub("", price)
    if not digits:
        return None
    return int(digits)


def _rank_key(listing: Listing) -> Tuple[int, int, int]:
    value = price_value(listing.price)
    return (
        0 if listing.is_available else 1,
        0 if value is not None else 1,
        value if value is not None else 0,
    )


def rank_listings(listings: Iterable[Listing]) -> List[Listing]:
    """Available first, then priced before unpriced, then cheapest first.

    ``sorted`` is stable, so listings with equal keys keep their input order.
    """
    return sorted(listings, key=_rank_key)


def _round_half_up(total: int, count: int) -> int:
    return (2 * total + count) // (2 * count)


def compute_stats(listings: Iterable[Listing]) -> SearchStats:
    items = list(listings)
    available = sum(1 for item in items if item.is_available)
    prices = sorted(
        value for value in (price_value(item.price) for item in items) if value is not None
    )

    price_range = PriceRange()
    if prices:
        price_range = PriceRange(
            min=prices[0],
            max=prices[-1],
            average=_round_half_up(sum(prices), len(prices)),
        )

    return SearchStats(
        total_results=len(items),
        available_count=available,
        unavailable_count=len(items) - available,
        price_range=price_range,
    )


def apply_filters(listings: Iterable[Listing], filters: Optional[SearchFilters]) -> List[Listing]:
    items = list(listings)
    if filters is None or filters.is_empty():
        return items

    # A limit of 0 means no limit.
    if filters.max_price:
        limit = filters.max_price
        items = [
            item
            for item in items
            if price_value(item.price) is None or price_value(item.price) <= limit
        ]

    if filters.condition:
        wanted = filters.condition.lower()
        items = [item for item in items if item.condition and wanted in item.condition.lower()]

    if filters.platform is not None:
        items = [item for item in items if item.platform == filters.platform]

    return items
