"""
Card Pricer - Reconciliation Pipeline

Drives lookup -> arbitration for every input record and returns one
resolved record per input, in input order.

Lookups run concurrently, bounded by a semaphore. Each result is written
into the slot matching its input position, so completion order never
leaks into the output. A failing record is marked and the run carries on:
- lookup error or timeout  -> FailureKind.LOOKUP_FAILED
- zero candidates          -> FailureKind.PRICE_UNAVAILABLE

Anything other than a PriceLookupError propagates and aborts the run,
cancelling the lookups still in flight.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from tcg_pricer.config import ArbitrationStrategy, settings
from tcg_pricer.engine.arbitration import arbitrate
from tcg_pricer.models.record import FailureKind, PriceCandidate, Record
from tcg_pricer.pipeline.lookup import (
    PriceLookup,
    PriceLookupError,
    PriceLookupTimeoutError,
)

logger = structlog.get_logger(__name__)


class ReconciliationPipeline:
    """
    Prices a batch of records against a PriceLookup.

    Holds no per-record state. The lookup and strategy are shared
    read-only by every concurrent task.
    """

    def __init__(
        self,
        lookup: PriceLookup,
        strategy: ArbitrationStrategy,
        max_concurrency: int | None = None,
        lookup_timeout: float | None = None,
    ):
        self._lookup = lookup
        self._strategy = strategy
        self._max_concurrency = (
            max_concurrency if max_concurrency is not None else settings.MAX_CONCURRENT_LOOKUPS
        )
        self._lookup_timeout = (
            lookup_timeout if lookup_timeout is not None else settings.LOOKUP_TIMEOUT_SECONDS
        )

        if self._max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self._lookup_timeout <= 0:
            raise ValueError("lookup_timeout must be positive")

    @property
    def strategy(self) -> ArbitrationStrategy:
        return self._strategy

    async def _fetch_candidates(self, record: Record) -> list[PriceCandidate]:
        identifier = record.identifier
        try:
            return await asyncio.wait_for(
                self._lookup.lookup(identifier),
                timeout=self._lookup_timeout,
            )
        except asyncio.TimeoutError as e:
            raise PriceLookupTimeoutError(
                f"lookup for {identifier} timed out after {self._lookup_timeout}s",
                identifier=identifier,
            ) from e

    async def price_record(self, record: Record) -> Record:
        """
        Resolve a single record.

        Returns:
            A new record carrying either the arbitrated price or a failure.
        """
        try:
            candidates = await self._fetch_candidates(record)
        except PriceLookupError as e:
            return record.with_failure(FailureKind.LOOKUP_FAILED, str(e))

        if not candidates:
            return record.with_failure(
                FailureKind.PRICE_UNAVAILABLE,
                f"no price quoted for {record.identifier}",
            )

        price = arbitrate(candidates, self._strategy)
        return record.with_price(price)

    async def run(self, records: Sequence[Record]) -> list[Record]:
        """
        Resolve every record concurrently.

        Args:
            records: Input records. Not modified.

        Returns:
            Resolved records, same length and order as the input.
        """
        logger.info(
            "reconcile_start",
            record_count=len(records),
            strategy=self._strategy.value,
            max_concurrency=self._max_concurrency,
        )

        slots: list[Record | None] = [None] * len(records)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _worker(index: int, record: Record) -> None:
            async with semaphore:
                slots[index] = await self.price_record(record)

        tasks = [
            asyncio.ensure_future(_worker(index, record))
            for index, record in enumerate(records)
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            # No lookup may outlive run(); the caller closes the shared client next.
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        resolved: list[Record] = []
        for index, record in enumerate(slots):
            if record is None:
                raise RuntimeError(f"record at position {index} was never resolved")
            resolved.append(record)

        failures = failed_records(resolved)
        for record in failures:
            logger.warning(
                "reconcile_record_failed",
                identifier=str(record.identifier),
                kind=record.failure.value if record.failure else None,
                reason=record.failure_reason,
            )

        logger.info(
            "reconcile_complete",
            record_count=len(resolved),
            priced=len(resolved) - len(failures),
            failed=len(failures),
        )
        return resolved


def failed_records(records: Sequence[Record]) -> list[Record]:
    """Records that ended the run without a price."""
    return [record for record in records if record.failure is not None]


async def price_records(
    records: Sequence[Record],
    lookup: PriceLookup,
    strategy: ArbitrationStrategy,
    max_concurrency: int | None = None,
    lookup_timeout: float | None = None,
) -> list[Record]:
    """Convenience wrapper: build a pipeline and run it once."""
    pipeline = ReconciliationPipeline(
        lookup,
        strategy,
        max_concurrency=max_concurrency,
        lookup_timeout=lookup_timeout,
    )
    return await pipeline.run(records)
