"""
Card Pricer - Scryfall API Client

Quotes card prices from the Scryfall search API. One lookup searches for
every printing of an exact card name (optionally restricted to a set) and
turns each printing's price into a PriceCandidate.

Base URL: https://api.scryfall.com
Endpoint: GET /cards/search?q=!"<name>" set:<code>&unique=prints

Scryfall answers "no cards matched" with a 404 error object whose code is
"not_found". That is a legitimate zero-candidate result, not a failure.
No retries here: a failed request surfaces as a PriceLookupError.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from tcg_pricer.config import settings
from tcg_pricer.models.record import CardIdentifier, PriceCandidate
from tcg_pricer.pipeline.lookup import (
    PriceLookupParseError,
    PriceLookupStatusError,
    PriceLookupTransportError,
)

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


class ScryfallCard(BaseModel):
    """The subset of a Scryfall card object needed for pricing."""

    name: str
    set: str = Field(default="", description="Set code of this printing")
    collector_number: str = Field(default="")
    prices: dict[str, str | None] = Field(default_factory=dict)

    @property
    def printing(self) -> str:
        return f"{self.set}/{self.collector_number}"


class ScryfallSearchResponse(BaseModel):
    """Paginated list object returned by /cards/search."""

    object: str
    data: list[ScryfallCard] = Field(default_factory=list)
    has_more: bool = False
    next_page: str | None = None


class ScryfallErrorResponse(BaseModel):
    """Error object Scryfall returns with non-2xx statuses."""

    object: str
    code: str = ""
    status: int = 0
    details: str = ""


# ---------------------------------------------------------------------------
# Query Helpers
# ---------------------------------------------------------------------------


def build_search_query(identifier: CardIdentifier) -> str:
    """
    Build an exact-name Scryfall search query.

    >>> build_search_query(CardIdentifier(name="Lightning Bolt", set_code="m21"))
    '!"Lightning Bolt" set:m21'
    """
    name = identifier.name.replace('"', '\\"')
    query = f'!"{name}"'
    if identifier.set_code:
        query += f" set:{identifier.set_code}"
    return query


def extract_candidates(
    cards: list[ScryfallCard],
    price_field: str,
    identifier: CardIdentifier | None = None,
) -> list[PriceCandidate]:
    """
    Turn each printing's quoted price into a candidate.

    Printings without a quote for price_field are skipped.

    Raises:
        PriceLookupParseError: If a quoted price is not a valid non-negative number.
    """
    candidates: list[PriceCandidate] = []
    for card in cards:
        raw = card.prices.get(price_field)
        if raw is None or raw == "":
            continue
        try:
            candidates.append(PriceCandidate(value=float(raw), source=card.printing))
        except (ValueError, ValidationError) as e:
            raise PriceLookupParseError(
                f"unparseable {price_field} price {raw!r} for {card.printing}",
                identifier=identifier,
            ) from e
    return candidates


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class ScryfallClient:
    """
    Async client for the Scryfall search API.

    One httpx.AsyncClient is shared read-only by every concurrent lookup.

    Usage:
        async with ScryfallClient() as client:
            candidates = await client.lookup(CardIdentifier(name="Lightning Bolt"))
    """

    def __init__(
        self,
        base_url: str | None = None,
        price_field: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
    ):
        self._base_url = base_url or settings.SCRYFALL_BASE_URL
        self._price_field = price_field or settings.SCRYFALL_PRICE_FIELD
        self._timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._user_agent = user_agent or settings.USER_AGENT
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ScryfallClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "User-Agent": self._user_agent,
                "Accept": "application/json",
            },
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_page(
        self,
        url: str,
        identifier: CardIdentifier,
        params: dict[str, Any] | None = None,
    ) -> ScryfallSearchResponse | None:
        """
        Fetch one page of search results.

        Returns None when Scryfall reports that nothing matched.
        """
        assert self._client is not None, "Client not initialized. Use 'async with'."

        try:
            response = await self._client.get(url, params=params)
        except httpx.RequestError as e:
            logger.error(
                "scryfall_request_error",
                identifier=str(identifier),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PriceLookupTransportError(
                f"request for {identifier} failed: {type(e).__name__}: {e}",
                identifier=identifier,
            ) from e

        if response.status_code == 404 and self._is_not_found(response):
            return None

        if not response.is_success:
            logger.error(
                "scryfall_http_error",
                identifier=str(identifier),
                status_code=response.status_code,
            )
            raise PriceLookupStatusError(
                f"Scryfall returned HTTP {response.status_code} for {identifier}",
                status_code=response.status_code,
                identifier=identifier,
            )

        try:
            return ScryfallSearchResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            logger.error(
                "scryfall_parse_error",
                identifier=str(identifier),
                error=str(e),
            )
            raise PriceLookupParseError(
                f"unexpected Scryfall response for {identifier}",
                identifier=identifier,
            ) from e

    @staticmethod
    def _is_not_found(response: httpx.Response) -> bool:
        try:
            error = ScryfallErrorResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            return False
        return error.object == "error" and error.code == "not_found"

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def search_cards(self, identifier: CardIdentifier) -> list[ScryfallCard]:
        """
        Return every printing matching the identifier, following pagination.

        Raises:
            PriceLookupError: On transport, status or parse failures.
        """
        logger.debug("scryfall_search", identifier=str(identifier))

        page = await self._get_page(
            "/cards/search",
            identifier,
            params={"q": build_search_query(identifier), "unique": "prints"},
        )
        if page is None:
            return []

        cards = list(page.data)
        while page.has_more and page.next_page:
            page = await self._get_page(page.next_page, identifier)
            if page is None:
                break
            cards.extend(page.data)

        logger.debug(
            "scryfall_search_complete",
            identifier=str(identifier),
            printings=len(cards),
        )
        return cards

    async def lookup(self, identifier: CardIdentifier) -> list[PriceCandidate]:
        """
        Quote candidate prices for one card.

        Returns:
            One candidate per printing that has a price in the configured
            price field. Empty when nothing matched or nothing is priced.

        Raises:
            PriceLookupError: On transport, status or parse failures.
        """
        cards = await self.search_cards(identifier)
        candidates = extract_candidates(cards, self._price_field, identifier)

        logger.info(
            "scryfall_lookup_complete",
            identifier=str(identifier),
            printings=len(cards),
            candidates=len(candidates),
            price_field=self._price_field,
        )
        return candidates
