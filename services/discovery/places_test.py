"""Tests for the Google Places client."""

import httpx
import pytest

from services.discovery.config import DiscoveryConfig
from services.discovery.errors import ProviderError, RateLimitError
from services.discovery.places import LocationBias, PlaceResult, PlacesClient


BIAS = LocationBias(lat=43.5, lng=-80.5, radius_km=5.0)
CONFIG = DiscoveryConfig(page_delay_s=0, result_cap=60)


def _place(i: int) -> dict:
    return {
        "place_id": f"p{i}",
        "name": f"Farm {i}",
        "formatted_address": f"{i} Concession Rd, Guelph, ON N1H 6J1, Canada",
        "geometry": {"location": {"lat": 43.5 + i * 0.001, "lng": -80.5}},
        "types": ["establishment"],
    }


def _client(handler) -> PlacesClient:
    transport = httpx.MockTransport(handler)
    return PlacesClient("test-key", config=CONFIG, client=httpx.AsyncClient(transport=transport))


@pytest.mark.no_db
class TestPlaceResult:
    """Tests for PlaceResult.from_api."""

    def test_parses_fields(self):
        raw = {
            "place_id": "abc",
            "name": "  Apple Acres ",
            "formatted_address": "1 Main St, Vineland, ON L0R 2C0, Canada",
            "geometry": {"location": {"lat": 43.15, "lng": -79.39}},
            "address_components": [
                {"long_name": "L0R 2C0", "short_name": "L0R 2C0", "types": ["postal_code"]},
                {"long_name": "Canada", "short_name": "CA", "types": ["country", "political"]},
            ],
            "types": ["food", "store"],
        }
        place = PlaceResult.from_api(raw)

        assert place.external_id == "abc"
        assert place.name == "Apple Acres"
        assert place.lat == 43.15
        assert place.lng == -79.39
        assert place.postal_code == "L0R 2C0"
        assert place.country_code == "CA"
        assert place.type_tags == ["food", "store"]

    def test_missing_geometry(self):
        place = PlaceResult.from_api({"place_id": "abc", "name": "No Geo"})
        assert place.lat is None
        assert place.lng is None
        assert place.type_tags == []


@pytest.mark.no_db
class TestPlacesClient:
    """Tests for PlacesClient.search."""

    @pytest.mark.asyncio
    async def test_sends_location_bias(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(dict(request.url.params))
            return httpx.Response(200, json={"status": "OK", "results": [_place(1)]})

        resp = await _client(handler).search("farm market", BIAS)

        assert seen["query"] == "farm market"
        assert seen["location"] == "43.5,-80.5"
        assert seen["radius"] == "5000"
        assert seen["key"] == "test-key"
        assert [r.external_id for r in resp.results] == ["p1"]
        assert resp.hit_result_cap is False

    @pytest.mark.asyncio
    async def test_zero_results(self):
        def handler(request):
            return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

        resp = await _client(handler).search("farm market", BIAS)

        assert resp.results == []
        assert resp.hit_result_cap is False

    @pytest.mark.asyncio
    async def test_follows_pages_up_to_cap(self):
        """Three full pages -> 60 results and the cap flag is set."""
        pages = {
            None: {"status": "OK", "results": [_place(i) for i in range(20)], "next_page_token": "t1"},
            "t1": {"status": "OK", "results": [_place(i) for i in range(20, 40)], "next_page_token": "t2"},
            "t2": {"status": "OK", "results": [_place(i) for i in range(40, 60)], "next_page_token": "t3"},
        }
        requested = []

        def handler(request):
            token = request.url.params.get("pagetoken")
            requested.append(token)
            return httpx.Response(200, json=pages[token])

        resp = await _client(handler).search("farm market", BIAS)

        assert requested == [None, "t1", "t2"]
        assert len(resp.results) == 60
        assert resp.hit_result_cap is True

    @pytest.mark.asyncio
    async def test_retries_invalid_request_on_page_token(self):
        attempts = {"t1": 0}

        def handler(request):
            token = request.url.params.get("pagetoken")
            if token is None:
                return httpx.Response(200, json={"status": "OK", "results": [_place(1)], "next_page_token": "t1"})
            attempts["t1"] += 1
            if attempts["t1"] < 3:
                return httpx.Response(200, json={"status": "INVALID_REQUEST"})
            return httpx.Response(200, json={"status": "OK", "results": [_place(2)]})

        resp = await _client(handler).search("farm market", BIAS)

        assert attempts["t1"] == 3
        assert [r.external_id for r in resp.results] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_page_failure_keeps_first_page(self):
        def handler(request):
            if request.url.params.get("pagetoken"):
                return httpx.Response(500)
            return httpx.Response(200, json={"status": "OK", "results": [_place(1)], "next_page_token": "t1"})

        resp = await _client(handler).search("farm market", BIAS)

        assert [r.external_id for r in resp.results] == ["p1"]

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key"})

        with pytest.raises(ProviderError) as exc:
            await _client(handler).search("farm market", BIAS)

        assert exc.value.status == "REQUEST_DENIED"
        assert not isinstance(exc.value, RateLimitError)

    @pytest.mark.asyncio
    async def test_over_query_limit_is_rate_limit(self):
        def handler(request):
            return httpx.Response(200, json={"status": "OVER_QUERY_LIMIT"})

        with pytest.raises(RateLimitError):
            await _client(handler).search("farm market", BIAS)

    @pytest.mark.asyncio
    async def test_http_429_is_rate_limit(self):
        def handler(request):
            return httpx.Response(429)

        with pytest.raises(RateLimitError) as exc:
            await _client(handler).search("farm market", BIAS)

        assert exc.value.status_code == 429

    @pytest.mark.asyncio
    async def test_http_error_raises_provider_error(self):
        def handler(request):
            return httpx.Response(503)

        with pytest.raises(ProviderError) as exc:
            await _client(handler).search("farm market", BIAS)

        assert exc.value.status_code == 503
