"""
Card Pricer - Price Lookup Interface

The reconciliation pipeline talks to the pricing service only through the
PriceLookup protocol, so tests can swap in an in-memory implementation.

A lookup either returns a (possibly empty) list of candidates or raises a
PriceLookupError subclass. An empty list means the service answered and
has no price. It is never used to signal a failed request.
"""

from __future__ import annotations

from typing import Protocol

from tcg_pricer.models.record import CardIdentifier, PriceCandidate


class PriceLookupError(RuntimeError):
    """Base error for a lookup that did not produce a usable answer."""

    def __init__(self, message: str, *, identifier: CardIdentifier | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class PriceLookupTransportError(PriceLookupError):
    """Raised when the request never got a response (DNS, connect, read...)."""


class PriceLookupStatusError(PriceLookupError):
    """Raised when the service responds with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        identifier: CardIdentifier | None = None,
    ) -> None:
        super().__init__(message, identifier=identifier)
        self.status_code = status_code


class PriceLookupParseError(PriceLookupError):
    """Raised when the response body does not match the expected schema."""


class PriceLookupTimeoutError(PriceLookupError):
    """Raised when a lookup exceeds its time budget."""


class PriceLookup(Protocol):
    """Anything that can quote prices for a card identifier."""

    async def lookup(self, identifier: CardIdentifier) -> list[PriceCandidate]:
        ...
