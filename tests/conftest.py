"""
Card Pricer - Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- In-memory PriceLookup substitute (no network)
- Mock Scryfall API response data
- Async test support via pytest-asyncio
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Callable, Iterator

import pytest
import structlog

from tcg_pricer.models.record import CardIdentifier, PriceCandidate


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Undo logging configuration done by main() so later tests log to a live stream."""
    yield
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# Fake Price Lookup
# ---------------------------------------------------------------------------


class FakeLookup:
    """
    PriceLookup keyed by card name.

    responses maps a name to a list of prices, or to an exception to raise.
    delays maps a name to seconds to sleep before answering, which lets a
    test force lookups to complete out of input order.
    """

    def __init__(
        self,
        responses: dict[str, list[float] | Exception],
        delays: dict[str, float] | None = None,
    ):
        self.responses = responses
        self.delays = delays or {}
        self.calls: list[CardIdentifier] = []
        self.completed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def lookup(self, identifier: CardIdentifier) -> list[PriceCandidate]:
        self.calls.append(identifier)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(identifier.name, 0))
            response = self.responses[identifier.name]
            if isinstance(response, Exception):
                raise response
            return [PriceCandidate(value=value) for value in response]
        finally:
            self.in_flight -= 1
            self.completed.append(identifier.name)


@pytest.fixture
def make_lookup() -> Callable[..., FakeLookup]:
    """Factory for FakeLookup instances."""
    return FakeLookup


# ---------------------------------------------------------------------------
# Fixture Loaders
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def load_mock_scryfall() -> dict:
    """Load mock Scryfall search response from fixtures/mock_scryfall_search.json."""
    fixture_path = Path(__file__).parent / "fixtures" / "mock_scryfall_search.json"
    with open(fixture_path) as f:
        return json.load(f)
