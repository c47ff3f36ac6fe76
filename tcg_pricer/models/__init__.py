"""
Models package - export record and candidate models.
"""

from tcg_pricer.models.record import CardIdentifier, FailureKind, PriceCandidate, Record

__all__ = ["CardIdentifier", "FailureKind", "PriceCandidate", "Record"]
