"""
Card Pricer - Arbitration Engine

Collapses the candidate prices quoted for one card into a single price.

A card name without a set code usually matches several printings, each
with its own price. The configured strategy decides which one the record
gets: the cheapest (MinValue) or the most expensive (MaxValue). Ties need
no extra rule since every tied candidate carries the same value.

Pure function: no state, no I/O.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from tcg_pricer.config import ArbitrationStrategy
from tcg_pricer.models.record import PriceCandidate

logger = structlog.get_logger(__name__)


def arbitrate(
    candidates: Sequence[PriceCandidate],
    strategy: ArbitrationStrategy,
) -> float:
    """
    Select one price from a non-empty candidate set.

    Args:
        candidates: Prices quoted for a single identifier.
        strategy: MIN_VALUE picks the lowest value, MAX_VALUE the highest.

    Returns:
        The winning candidate's value.

    Raises:
        ValueError: If candidates is empty. Callers must handle the
            zero-candidate case before arbitrating.
    """
    if not candidates:
        raise ValueError("cannot arbitrate an empty candidate set")

    values = [candidate.value for candidate in candidates]
    if strategy is ArbitrationStrategy.MIN_VALUE:
        chosen = min(values)
    elif strategy is ArbitrationStrategy.MAX_VALUE:
        chosen = max(values)
    else:
        raise ValueError(f"unsupported arbitration strategy: {strategy!r}")

    logger.debug(
        "arbitration_decided",
        strategy=strategy.value,
        candidate_count=len(values),
        chosen=chosen,
    )
    return chosen
