import logging
from typing import Optional

from ..config import Settings
from ..constants import SITE_RESTRICTIONS
from ..errors import BadRequestError, SearchProviderError
from ..models import SearchFilters, SearchOutcome
from ..utils import compress_whitespace
from .client import SerperClient
from .normalizer import normalize_hits
from .ranking import apply_filters, compute_stats, rank_listings

logger = logging.getLogger(__name__)


def build_search_query(keyword: str) -> str:
    """Keyword as given (whitespace collapsed), restricted to the supported marketplaces."""
    cleaned = compress_whitespace(keyword)
    sites = " OR ".join(SITE_RESTRICTIONS)
    return f"{cleaned} ({sites})"


class MerchandiseSearcher:
    def __init__(self, settings: Settings, search_client: SerperClient):
        self.settings = settings
        self.search_client = search_client

    def search(self, keyword: str, filters: Optional[SearchFilters] = None) -> SearchOutcome:
        keyword = compress_whitespace(keyword or "")
        if not keyword:
            raise BadRequestError("Search keyword is empty.")

        query = build_search_query(keyword)
        logger.info("Searching marketplaces: %s", query)

        try:
            hits = self.search_client.search(query, num=self.settings.search_result_count)
        except SearchProviderError as exc:
            logger.warning("Search provider failed for %r: %s", keyword, exc)
            return SearchOutcome(query=keyword, provider_error=str(exc))

        listings = normalize_hits(hits)
        logger.info("Kept %d of %d hits as product listings", len(listings), len(hits))

        listings = rank_listings(apply_filters(listings, filters))
        return SearchOutcome(
            query=keyword,
            listings=listings,
            stats=compute_stats(listings),
        )
