"""
Card Pricer - Record & Price Candidate Models

A Record is one input row: a card identifier and an optional count. It
leaves the reconciliation pipeline either priced or carrying a failure,
never both and never neither.

Records are frozen. The pipeline derives a new record per outcome with
with_price() / with_failure() instead of mutating the input.
"""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FailureKind(str, Enum):
    """Per-record failure outcomes. Neither aborts the run."""
    LOOKUP_FAILED = "lookup_failed"          # transport, status, parse or timeout
    PRICE_UNAVAILABLE = "price_unavailable"  # lookup succeeded with zero candidates


class CardIdentifier(BaseModel):
    """Lookup key for one card: name plus optional set code."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Card name, e.g. 'Lightning Bolt'")
    set_code: str | None = Field(default=None, description="Set code, e.g. 'm21'")

    def __str__(self) -> str:
        if self.set_code:
            return f"{self.name} [{self.set_code}]"
        return self.name


class PriceCandidate(BaseModel):
    """One price quoted by the pricing service for an identifier."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(..., ge=0)
    source: str | None = Field(default=None, description="Printing the quote belongs to")

    @field_validator("value")
    @classmethod
    def check_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("candidate value must be finite")
        return v


class Record(BaseModel):
    """
    One card row flowing through the pipeline.

    Attributes:
        name: Card name (required).
        set_code: Optional set code, lower-cased.
        count: Optional positive quantity. effective_count treats None as 1.
        price: Arbitrated unit price, set only by the pipeline.
        failure: Failure kind when the record could not be priced.
        failure_reason: Human-readable detail for the failure.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    set_code: str | None = None
    count: int | None = Field(default=None, gt=0)
    price: float | None = Field(default=None, ge=0)
    failure: FailureKind | None = None
    failure_reason: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("set_code", mode="before")
    @classmethod
    def normalize_set_code(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @field_validator("price")
    @classmethod
    def check_finite_price(cls, v: float | None) -> float | None:
        if v is not None and not math.isfinite(v):
            raise ValueError("price must be finite")
        return v

    @model_validator(mode="after")
    def check_outcome(self) -> Record:
        if self.price is not None and self.failure is not None:
            raise ValueError("a record cannot be both priced and failed")
        return self

    @property
    def identifier(self) -> CardIdentifier:
        return CardIdentifier(name=self.name, set_code=self.set_code)

    @property
    def effective_count(self) -> int:
        return self.count if self.count is not None else 1

    @property
    def is_priced(self) -> bool:
        return self.price is not None

    @property
    def is_resolved(self) -> bool:
        """True once the record carries a price or a failure."""
        return self.price is not None or self.failure is not None

    def with_price(self, price: float) -> Record:
        return Record.model_validate(
            {**self.model_dump(), "price": price, "failure": None, "failure_reason": None}
        )

    def with_failure(self, kind: FailureKind, reason: str) -> Record:
        return Record.model_validate(
            {**self.model_dump(), "price": None, "failure": kind, "failure_reason": reason}
        )
