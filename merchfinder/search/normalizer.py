from typing import Iterable, List, Optional

from ..models import Listing, RawSearchHit
from .extractors import (
    check_availability,
    extract_condition,
    extract_price,
    is_valid_product_url,
    platform_from_url,
)


def normalize_hit(hit: RawSearchHit) -> Optional[Listing]:
    """Turn one raw hit into a Listing, or None when it is not a product page."""
    if not is_valid_product_url(hit.url):
        return None
    platform = platform_from_url(hit.url)
    if platform is None:
        return None

    combined = f"{hit.title} {hit.snippet} {hit.content or ''}"
    return Listing(
        platform=platform,
        title=hit.title,
        link=hit.url,
        price=extract_price(combined),
        condition=extract_condition(combined),
        is_available=check_availability(combined),
    )


def normalize_hits(hits: Iterable[RawSearchHit]) -> List[Listing]:
    listings: List[Listing] = []
    for hit in hits:
        listing = normalize_hit(hit)
        if listing is not None:
            listings.append(listing)
    return listings
