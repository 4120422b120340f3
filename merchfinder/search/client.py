import logging
from typing import Any, Dict, List

import requests

from ..errors import ConfigurationError, SearchProviderError
from ..models import RawSearchHit

logger = logging.getLogger(__name__)


class SerperClient:
    """Thin wrapper over the Serper Google-search endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int,
        country: str = "",
        language: str = "",
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.country = country
        self.language = language
        self.session = requests.Session()

    def search(self, query: str, num: int = 10) -> List[RawSearchHit]:
        if not self.api_key:
            raise ConfigurationError("SERPER_API_KEY is not configured.")

        headers = {"X-API-KEY": self.api_key, "Content-Type": "application/json"}
        payload: Dict[str, Any] = {"q": query, "num": num}
        if self.country:
            payload["gl"] = self.country
        if self.language:
            payload["hl"] = self.language

        try:
            response = self.session.post(
                self.base_url, headers=headers, json=payload, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise SearchProviderError(f"Serper request failed: {exc}") from exc

        if response.status_code >= 400:
            raise SearchProviderError(
                f"Serper returned {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise SearchProviderError(f"Failed to parse Serper response: {exc}") from exc

        if not isinstance(data, dict):
            raise SearchProviderError("Serper response is not a JSON object.")

        organic = data.get("organic") or []
        logger.info("Serper returned %d organic results for %r", len(organic), query)

        hits: List[RawSearchHit] = []
        for item in organic:
            if not isinstance(item, dict):
                continue
            url = item.get("link") or ""
            if not url:
                continue
            hits.append(
                RawSearchHit(
                    title=item.get("title") or "",
                    url=url,
                    snippet=item.get("snippet") or "",
                )
            )
        return hits
