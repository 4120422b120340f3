from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .constants import PLATFORM_MERCARI, PLATFORM_SURUGAYA


class Platform(str, Enum):
    MERCARI = PLATFORM_MERCARI
    SURUGAYA = PLATFORM_SURUGAYA


@dataclass(frozen=True)
class RawSearchHit:
    """One organic result as handed back by the search provider."""

    title: str
    url: str
    snippet: str = ""
    content: Optional[str] = None


@dataclass(frozen=True)
class Listing:
    """A validated product page with the fields we could read off its text."""

    platform: Platform
    title: str
    link: str
    price: Optional[str] = None
    condition: Optional[str] = None
    is_available: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform.value,
            "title": self.title,
            "price": self.price,
            "condition": self.condition,
            "link": self.link,
            "isAvailable": self.is_available,
        }


@dataclass(frozen=True)
class PriceRange:
    min: int = 0
    max: int = 0
    average: int = 0


@dataclass(frozen=True)
class SearchStats:
    total_results: int = 0
    available_count: int = 0
    unavailable_count: int = 0
    price_range: PriceRange = field(default_factory=PriceRange)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalResults": self.total_results,
            "availableCount": self.available_count,
            "unavailableCount": self.unavailable_count,
            "priceRange": {
                "min": self.price_range.min,
                "max": self.price_range.max,
                "average": self.price_range.average,
            },
        }


@dataclass(frozen=True)
class SearchFilters:
    max_price: Optional[int] = None
    condition: Optional[str] = None
    platform: Optional[Platform] = None

    def is_empty(self) -> bool:
        return not self.max_price and not self.condition and self.platform is None


@dataclass
class SearchOutcome:
    """What one keyword search produced.

    ``provider_error`` is set when the provider could not be reached or
    answered with something unusable; ``listings`` is then empty. An outcome
    with no listings and no ``provider_error`` means the search really found
    nothing.
    """

    query: str
    listings: List[Listing] = field(default_factory=list)
    stats: SearchStats = field(default_factory=SearchStats)
    provider_error: Optional[str] = None

    @property
    def provider_failed(self) -> bool:
        return self.provider_error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [listing.to_dict() for listing in self.listings],
            "stats": self.stats.to_dict(),
            "query": self.query,
        }


@dataclass(frozen=True)
class ImageValidation:
    is_anime: bool
    is_clear: bool
    reason: str = ""


@dataclass(frozen=True)
class ClassificationResult:
    series: str
    character: str
    japanese_keywords: str
    search_keyword: str
    reasoning: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "series": self.series,
            "character": self.character,
            "japaneseKeywords": self.japanese_keywords,
            "searchKeyword": self.search_keyword,
            "reasoning": self.reasoning,
        }
