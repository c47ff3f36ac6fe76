"""
Card Pricer - CSV Input & Output

Reads card lists into Records and writes resolved Records back out.

Input columns are matched case-insensitively against common header
variations (e.g. "Quantity" or "qty" for count). Output always uses
the canonical columns: name, set_code, count, price, error.

Both directions fail loudly: a malformed input row raises InputParseError
and any problem acquiring or writing the destination raises
OutputWriteError. Callers treat both as run-fatal.
"""

from __future__ import annotations

import csv
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

import structlog
from pydantic import ValidationError

from tcg_pricer.models.record import Record

logger = structlog.get_logger(__name__)

# Canonical field -> accepted header spellings (lower-cased)
COLUMN_MAPPINGS: dict[str, list[str]] = {
    "name": ["name", "card", "card_name", "card name"],
    "set_code": ["set", "set_code", "set code", "edition"],
    "count": ["count", "quantity", "qty"],
}

OUTPUT_COLUMNS = ["name", "set_code", "count", "price", "error"]


class InputParseError(ValueError):
    """Raised when the input table cannot be turned into Records."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class OutputWriteError(RuntimeError):
    """Raised when the output destination cannot be opened or written."""


def _resolve_columns(header: Iterable[str]) -> dict[str, str]:
    """Map canonical field names to the actual header names present."""
    # A leading byte-order mark sticks to the first header when the stream
    # was not decoded as utf-8-sig (stdin).
    by_lower = {column.lstrip("\ufeff").strip().lower(): column for column in header if column}
    resolved: dict[str, str] = {}
    for field, aliases in COLUMN_MAPPINGS.items():
        for alias in aliases:
            if alias in by_lower:
                resolved[field] = by_lower[alias]
                break
    return resolved


def _parse_count(raw: str | None, line: int) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        count = int(raw.strip())
    except ValueError as e:
        raise InputParseError(f"count must be an integer, got {raw!r}", line=line) from e
    if count <= 0:
        raise InputParseError(f"count must be positive, got {count}", line=line)
    return count


def read_records(stream: TextIO) -> list[Record]:
    """
    Parse a CSV card list.

    Args:
        stream: Text stream positioned at the header row.

    Returns:
        One Record per data row, in file order. Fully blank rows are skipped.

    Raises:
        InputParseError: On a missing name column, empty name, bad count,
            undecodable bytes or malformed CSV.
    """
    try:
        return _read_rows(stream)
    except (UnicodeDecodeError, csv.Error) as e:
        raise InputParseError(f"cannot parse input: {e}") from e


def _read_rows(stream: TextIO) -> list[Record]:
    reader = csv.DictReader(stream)
    if reader.fieldnames is None:
        raise InputParseError("input is empty, expected a header row")

    columns = _resolve_columns(reader.fieldnames)
    if "name" not in columns:
        raise InputParseError(
            f"no card name column found in header {reader.fieldnames}",
            line=1,
        )

    records: list[Record] = []
    for row in reader:
        line = reader.line_num
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue

        name = (row.get(columns["name"]) or "").strip()
        if not name:
            raise InputParseError("card name is empty", line=line)

        set_code = row.get(columns["set_code"]) if "set_code" in columns else None
        count_raw = row.get(columns["count"]) if "count" in columns else None

        try:
            record = Record(
                name=name,
                set_code=set_code,
                count=_parse_count(count_raw, line),
            )
        except ValidationError as e:
            raise InputParseError(str(e), line=line) from e
        records.append(record)

    logger.info("csv_records_read", record_count=len(records))
    return records


def read_records_from(path: str | Path | None) -> list[Record]:
    """Read records from a file path, or from stdin when path is None."""
    if path is None:
        return read_records(sys.stdin)
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            return read_records(f)
    except OSError as e:
        raise InputParseError(f"cannot read input file {path}: {e}") from e


def open_output(path: str | Path | None) -> TextIO:
    """
    Acquire the output destination.

    Files are created exclusively: an existing target is an error, never
    overwritten. Returns sys.stdout when path is None.

    Raises:
        OutputWriteError: If the file exists or cannot be created.
    """
    if path is None:
        return sys.stdout
    try:
        return open(path, "x", newline="", encoding="utf-8")
    except FileExistsError as e:
        raise OutputWriteError(f"output file {path} already exists") from e
    except OSError as e:
        raise OutputWriteError(f"cannot create output file {path}: {e}") from e


def _format_price(price: float | None) -> str:
    return "" if price is None else repr(price)


def _format_error(record: Record) -> str:
    if record.failure is None:
        return ""
    if record.failure_reason:
        return f"{record.failure.value}: {record.failure_reason}"
    return record.failure.value


def write_records(records: Iterable[Record], stream: TextIO) -> int:
    """
    Serialize resolved records as CSV.

    Returns:
        Number of data rows written.

    Raises:
        OutputWriteError: If the stream rejects a write.
    """
    writer = csv.DictWriter(stream, fieldnames=OUTPUT_COLUMNS, lineterminator="\n")
    written = 0
    try:
        writer.writeheader()
        for record in records:
            writer.writerow(
                {
                    "name": record.name,
                    "set_code": record.set_code or "",
                    "count": "" if record.count is None else record.count,
                    "price": _format_price(record.price),
                    "error": _format_error(record),
                }
            )
            written += 1
        stream.flush()
    except OSError as e:
        raise OutputWriteError(f"failed writing output: {e}") from e

    logger.info("csv_records_written", record_count=written)
    return written
