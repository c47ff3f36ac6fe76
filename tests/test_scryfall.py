"""
Tests for the Scryfall API client (pipeline/scryfall.py).

Covers:
- Client initialization and configuration
- lookup: success, price field selection, pagination
- 404 not_found -> zero candidates (not an error)
- Non-success statuses, malformed bodies, transport errors -> lookup errors
- Query building
"""

from __future__ import annotations

import httpx
import pytest
import respx

from tcg_pricer.config import settings
from tcg_pricer.models.record import CardIdentifier
from tcg_pricer.pipeline.lookup import (
    PriceLookupError,
    PriceLookupParseError,
    PriceLookupStatusError,
    PriceLookupTransportError,
)
from tcg_pricer.pipeline.scryfall import (
    ScryfallClient,
    ScryfallSearchResponse,
    build_search_query,
    extract_candidates,
)

BASE_URL = "https://api.scryfall.test"
BOLT = CardIdentifier(name="Lightning Bolt")

NOT_FOUND_BODY = {
    "object": "error",
    "code": "not_found",
    "status": 404,
    "details": "Your query didn't match any cards.",
}


def _card(set_code: str, number: str, usd: str | None) -> dict:
    return {
        "object": "card",
        "name": "Lightning Bolt",
        "set": set_code,
        "collector_number": number,
        "prices": {"usd": usd, "usd_foil": None},
    }


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


def test_scryfall_client_init() -> None:
    """Client uses settings defaults when no overrides are given."""
    client = ScryfallClient()

    assert client._base_url == settings.SCRYFALL_BASE_URL
    assert client._price_field == settings.SCRYFALL_PRICE_FIELD
    assert client._client is None  # Not yet opened


@pytest.mark.asyncio
async def test_lookup_requires_context_manager() -> None:
    client = ScryfallClient(base_url=BASE_URL)
    with pytest.raises(AssertionError, match="async with"):
        await client.lookup(BOLT)


# ---------------------------------------------------------------------------
# Query building
# ---------------------------------------------------------------------------


def test_build_search_query_name_only() -> None:
    assert build_search_query(BOLT) == '!"Lightning Bolt"'


def test_build_search_query_with_set() -> None:
    identifier = CardIdentifier(name="Lightning Bolt", set_code="m10")
    assert build_search_query(identifier) == '!"Lightning Bolt" set:m10'


def test_build_search_query_escapes_quotes() -> None:
    identifier = CardIdentifier(name='Kongming, "Sleeping Dragon"')
    assert build_search_query(identifier) == '!"Kongming, \\"Sleeping Dragon\\""'


# ---------------------------------------------------------------------------
# Candidate extraction
# ---------------------------------------------------------------------------


def test_extract_candidates_skips_unpriced(load_mock_scryfall) -> None:
    page = ScryfallSearchResponse.model_validate(load_mock_scryfall)

    candidates = extract_candidates(page.data, "usd")

    assert [c.value for c in candidates] == [2.51, 1.95]
    assert [c.source for c in candidates] == ["m10/146", "m11/149"]


def test_extract_candidates_other_price_field(load_mock_scryfall) -> None:
    page = ScryfallSearchResponse.model_validate(load_mock_scryfall)

    candidates = extract_candidates(page.data, "usd_foil")

    assert [c.value for c in candidates] == [14.99, 9.40, 31.00]


def test_extract_candidates_bad_price_raises() -> None:
    page = ScryfallSearchResponse.model_validate(
        {"object": "list", "data": [_card("m10", "146", "n/a")]}
    )
    with pytest.raises(PriceLookupParseError, match="unparseable"):
        extract_candidates(page.data, "usd")


def test_extract_candidates_negative_price_raises() -> None:
    page = ScryfallSearchResponse.model_validate(
        {"object": "list", "data": [_card("m10", "146", "-1.00")]}
    )
    with pytest.raises(PriceLookupParseError):
        extract_candidates(page.data, "usd")


# ---------------------------------------------------------------------------
# lookup: success paths
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_lookup_success(load_mock_scryfall) -> None:
    with respx.mock(base_url=BASE_URL) as mock:
        route = mock.get("/cards/search").mock(
            return_value=httpx.Response(200, json=load_mock_scryfall)
        )

        async with ScryfallClient(base_url=BASE_URL, price_field="usd") as client:
            candidates = await client.lookup(BOLT)

    assert sorted(c.value for c in candidates) == [1.95, 2.51]
    request = route.calls.last.request
    assert request.url.params["q"] == '!"Lightning Bolt"'
    assert request.url.params["unique"] == "prints"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["User-Agent"] == settings.USER_AGENT


@pytest.mark.asyncio
async def test_lookup_follows_pagination() -> None:
    next_page = f"{BASE_URL}/cards/search?page=2"
    first = {
        "object": "list",
        "has_more": True,
        "next_page": next_page,
        "data": [_card("m10", "146", "2.00")],
    }
    second = {
        "object": "list",
        "has_more": False,
        "data": [_card("m11", "149", "1.00"), _card("2xm", "117", "3.50")],
    }

    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/cards/search", params={"page": "2"}).mock(
            return_value=httpx.Response(200, json=second)
        )
        mock.get("/cards/search").mock(return_value=httpx.Response(200, json=first))

        async with ScryfallClient(base_url=BASE_URL) as client:
            candidates = await client.lookup(BOLT)

    assert [c.value for c in candidates] == [2.00, 1.00, 3.50]


@pytest.mark.asyncio
async def test_lookup_not_found_is_empty() -> None:
    """Scryfall's 404 not_found means zero candidates, not a failure."""
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/cards/search").mock(
            return_value=httpx.Response(404, json=NOT_FOUND_BODY)
        )

        async with ScryfallClient(base_url=BASE_URL) as client:
            candidates = await client.lookup(CardIdentifier(name="Not A Real Card"))

    assert candidates == []


@pytest.mark.asyncio
async def test_lookup_all_unpriced_is_empty() -> None:
    body = {"object": "list", "data": [_card("sld", "1587", None)]}
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/cards/search").mock(return_value=httpx.Response(200, json=body))

        async with ScryfallClient(base_url=BASE_URL) as client:
            candidates = await client.lookup(BOLT)

    assert candidates == []


# ---------------------------------------------------------------------------
# lookup: failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 429, 500, 503])
async def test_lookup_http_error(status_code: int) -> None:
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/cards/search").mock(
            return_value=httpx.Response(
                status_code, json={"object": "error", "code": "bad", "status": status_code}
            )
        )

        with pytest.raises(PriceLookupStatusError) as exc_info:
            async with ScryfallClient(base_url=BASE_URL) as client:
                await client.lookup(BOLT)

    assert exc_info.value.status_code == status_code
    assert exc_info.value.identifier == BOLT


@pytest.mark.asyncio
async def test_lookup_404_without_error_object_is_status_error() -> None:
    """A bare 404 (wrong path, proxy page) is a failure, not 'no cards'."""
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/cards/search").mock(return_value=httpx.Response(404, text="Not Found"))

        with pytest.raises(PriceLookupStatusError):
            async with ScryfallClient(base_url=BASE_URL) as client:
                await client.lookup(BOLT)


@pytest.mark.asyncio
async def test_lookup_malformed_json() -> None:
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/cards/search").mock(
            return_value=httpx.Response(200, text="<html>maintenance</html>")
        )

        with pytest.raises(PriceLookupParseError):
            async with ScryfallClient(base_url=BASE_URL) as client:
                await client.lookup(BOLT)


@pytest.mark.asyncio
async def test_lookup_schema_mismatch() -> None:
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/cards/search").mock(
            return_value=httpx.Response(200, json={"data": "not-a-list"})
        )

        with pytest.raises(PriceLookupParseError):
            async with ScryfallClient(base_url=BASE_URL) as client:
                await client.lookup(BOLT)


@pytest.mark.asyncio
async def test_lookup_transport_error() -> None:
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/cards/search").mock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(PriceLookupTransportError) as exc_info:
            async with ScryfallClient(base_url=BASE_URL) as client:
                await client.lookup(BOLT)

    assert isinstance(exc_info.value, PriceLookupError)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
