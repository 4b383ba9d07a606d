"""
Place search provider - Google Places Text Search.

The discovery service only depends on the PlaceSearchProvider protocol;
PlacesClient is the production implementation. Raw JSON is validated into
PlaceResult at this boundary so nothing downstream touches provider dicts.
"""

import asyncio
from typing import List, Optional, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from services.discovery.config import DiscoveryConfig
from services.discovery.errors import ProviderError, RateLimitError

PLACES_TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"


class LocationBias(BaseModel):
    """Circle the provider should prefer results in."""
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float
    radius_km: float

    @property
    def radius_m(self) -> int:
        return int(round(self.radius_km * 1000))


class PlaceResult(BaseModel):
    """One place returned by the provider."""
    model_config = ConfigDict(frozen=True)

    external_id: str
    name: str
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None
    type_tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict) -> "PlaceResult":
        """Build from a Places Text Search result dict."""
        location = (raw.get("geometry") or {}).get("location") or {}
        components = raw.get("address_components") or []
        return cls(
            external_id=raw["place_id"],
            name=(raw.get("name") or "").strip(),
            address=raw.get("formatted_address"),
            lat=location.get("lat"),
            lng=location.get("lng"),
            postal_code=_component(components, "postal_code"),
            country_code=_component(components, "country"),
            type_tags=raw.get("types") or [],
        )


class SearchResponse(BaseModel):
    """All pages of results for one query."""
    results: List[PlaceResult] = Field(default_factory=list)
    hit_result_cap: bool = False


class PlaceSearchProvider(Protocol):
    """Anything that can run a location-biased text search."""

    async def search(self, query: str, bias: LocationBias) -> SearchResponse:
        ...


def _component(components: list, kind: str) -> Optional[str]:
    for c in components:
        if kind in (c.get("types") or []):
            return c.get("short_name")
    return None


class PlacesClient:
    """Google Places Text Search over httpx.

    Pass an AsyncClient to share a connection pool (or to inject a mock
    transport in tests); otherwise one is created per search.
    """

    def __init__(self, api_key: str, config: Optional[DiscoveryConfig] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.config = config or DiscoveryConfig()
        self._client = client

    async def search(self, query: str, bias: LocationBias) -> SearchResponse:
        """Run one query, following next_page_token up to max_pages."""
        if self._client is not None:
            return await self._search(self._client, query, bias)
        async with httpx.AsyncClient(timeout=self.config.request_timeout_s) as client:
            return await self._search(client, query, bias)

    async def _search(self, client: httpx.AsyncClient, query: str, bias: LocationBias) -> SearchResponse:
        data = await self._get(client, {
            "query": query,
            "location": f"{bias.lat},{bias.lng}",
            "radius": bias.radius_m,
            "key": self.api_key,
        })

        status = data.get("status")
        if status == "ZERO_RESULTS":
            return SearchResponse(results=[], hit_result_cap=False)
        self._raise_for_status(status, data.get("error_message"))

        raw_results = list(data.get("results") or [])
        next_token = data.get("next_page_token")
        pages_left = self.config.max_pages - 1

        while next_token and pages_left > 0:
            page = await self._fetch_page(client, next_token)
            if page is None:
                break
            raw_results.extend(page.get("results") or [])
            next_token = page.get("next_page_token")
            pages_left -= 1

        results = [PlaceResult.from_api(r) for r in raw_results if r.get("place_id")]
        return SearchResponse(
            results=results,
            hit_result_cap=len(raw_results) >= self.config.result_cap,
        )

    async def _fetch_page(self, client: httpx.AsyncClient, token: str) -> Optional[dict]:
        """Fetch a follow-up page. Returns None when paging should stop.

        Google rejects a fresh token with INVALID_REQUEST until it becomes
        valid, so wait first and back off exponentially on that status.
        """
        delay = self.config.page_delay_s
        await asyncio.sleep(delay)

        for attempt in range(self.config.page_retries + 1):
            try:
                data = await self._get(client, {"pagetoken": token, "key": self.api_key})
            except ProviderError as e:
                logger.warning(f"Places page fetch failed, stopping pagination: {e}")
                return None

            status = data.get("status")
            if status == "OK":
                return data
            if status == "INVALID_REQUEST" and attempt < self.config.page_retries:
                await asyncio.sleep(delay * (2 ** attempt))
                continue

            logger.warning(f"Places page returned {status}, stopping pagination")
            return None
        return None

    async def _get(self, client: httpx.AsyncClient, params: dict) -> dict:
        try:
            resp = await client.get(PLACES_TEXT_SEARCH_URL, params=params)
        except httpx.HTTPError as e:
            raise ProviderError(f"Places Text Search request failed: {e}") from e

        if resp.status_code == 429:
            raise RateLimitError("Places Text Search rate limited", status_code=429)
        if resp.status_code != 200:
            raise ProviderError(
                f"Places Text Search failed: {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp.json()

    @staticmethod
    def _raise_for_status(status: Optional[str], message: Optional[str]) -> None:
        if status == "OK":
            return
        detail = f"Places Text Search error: {status} - {message or 'unknown'}"
        if status == "OVER_QUERY_LIMIT":
            raise RateLimitError(detail, status=status)
        raise ProviderError(detail, status=status or "")
