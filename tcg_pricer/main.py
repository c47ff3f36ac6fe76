"""
Card Pricer - Command-Line Entrypoint

Reads a card list, prices every card through the reconciliation pipeline
and writes the enriched table.

Run via:
    tcg-pricer -f cards.csv -o priced.csv --print-total
    cat cards.csv | python -m tcg_pricer.main -a Max

Exit codes:
    0  success
    1  input could not be read or parsed
    2  invalid command-line usage (argparse)
    3  output destination could not be acquired or written
    4  --strict and at least one record failed to price
    130 interrupted
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import TextIO

import structlog

from tcg_pricer.config import STRATEGY_CHOICES, ArbitrationStrategy, parse_strategy, settings
from tcg_pricer.engine.aggregate import summarize_total
from tcg_pricer.pipeline.lookup import PriceLookup
from tcg_pricer.pipeline.reconcile import ReconciliationPipeline, failed_records
from tcg_pricer.pipeline.scryfall import ScryfallClient
from tcg_pricer.utils.csv_io import (
    InputParseError,
    OutputWriteError,
    open_output,
    read_records_from,
    write_records,
)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_OUTPUT_ERROR = 3
EXIT_UNPRICED_RECORDS = 4
EXIT_INTERRUPTED = 130


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "WARNING") -> None:
    """
    Set up structured logging with JSON output on stderr.

    stdout is reserved for the priced table and the total.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    level = getattr(logging, log_level.upper(), logging.WARNING)

    # Configure stdlib logging first (for third-party libraries)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


# ---------------------------------------------------------------------------
# Argument Parsing
# ---------------------------------------------------------------------------


def _strategy_arg(value: str) -> ArbitrationStrategy:
    try:
        return parse_strategy(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from e
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}") from e
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tcg-pricer",
        description="Price a CSV list of cards against Scryfall.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tcg-pricer -f cards.csv -o priced.csv --print-total
  cat cards.csv | tcg-pricer -a Max > priced.csv
""",
    )
    parser.add_argument(
        "-f", "--file",
        default=None,
        help="Path to input CSV. Reads stdin when omitted.",
    )
    parser.add_argument(
        "-o", "--out",
        default=None,
        help="Path to output CSV (must not exist). Writes stdout when omitted.",
    )
    parser.add_argument(
        "--print-total",
        action="store_true",
        help="Print the total value of all priced cards to stdout.",
    )
    parser.add_argument(
        "-a", "--arbitration-strategy",
        type=_strategy_arg,
        default=settings.ARBITRATION_STRATEGY,
        metavar="{" + ",".join(STRATEGY_CHOICES) + "}",
        help=(
            "Which price to keep when a card has several: 'Min'/'MinValue' for "
            "the cheapest printing, 'Max'/'MaxValue' for the most expensive "
            f"(default: {settings.ARBITRATION_STRATEGY.value})."
        ),
    )
    parser.add_argument(
        "--max-concurrency",
        type=_positive_int,
        default=settings.MAX_CONCURRENT_LOOKUPS,
        help=f"Maximum lookups in flight (default: {settings.MAX_CONCURRENT_LOOKUPS}).",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=settings.LOOKUP_TIMEOUT_SECONDS,
        help=f"Per-card lookup timeout in seconds (default: {settings.LOOKUP_TIMEOUT_SECONDS}).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 4 if any card could not be priced.",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help=f"Log verbosity on stderr (default: {settings.LOG_LEVEL}).",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def _discard_output(out: TextIO, path: str | None) -> None:
    """Close and remove a destination that never received the table."""
    if out is sys.stdout or path is None:
        return
    out.close()
    try:
        os.remove(path)
    except OSError:
        structlog.get_logger(__name__).warning("output_cleanup_failed", path=path)


async def main(
    argv: list[str] | None = None,
    lookup: PriceLookup | None = None,
) -> int:
    """
    Application entrypoint. Returns the process exit code.

    Execution order:
    1. Parse arguments and configure logging
    2. Read all input records (fatal on error)
    3. Acquire the output destination (fatal on error)
    4. Price every record
    5. Write the table, then the optional total

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).
        lookup: Price source override. Defaults to a ScryfallClient.
    """
    args = parse_args(argv)
    _configure_logging(args.log_level)
    logger = structlog.get_logger(__name__)

    try:
        records = read_records_from(args.file)
    except InputParseError as e:
        logger.error("input_parse_failed", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    try:
        out = open_output(args.out)
    except OutputWriteError as e:
        logger.error("output_open_failed", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_OUTPUT_ERROR

    written = False
    try:
        if lookup is not None:
            pipeline = ReconciliationPipeline(
                lookup,
                args.arbitration_strategy,
                max_concurrency=args.max_concurrency,
                lookup_timeout=args.timeout,
            )
            priced = await pipeline.run(records)
        else:
            async with ScryfallClient() as client:
                pipeline = ReconciliationPipeline(
                    client,
                    args.arbitration_strategy,
                    max_concurrency=args.max_concurrency,
                    lookup_timeout=args.timeout,
                )
                priced = await pipeline.run(records)

        try:
            write_records(priced, out)
            written = True
        except OutputWriteError as e:
            logger.error("output_write_failed", error=str(e))
            print(f"error: {e}", file=sys.stderr)
            return EXIT_OUTPUT_ERROR
    finally:
        if written:
            if out is not sys.stdout:
                out.close()
        else:
            _discard_output(out, args.out)

    if args.print_total:
        summary = summarize_total(priced)
        print(f"total value: ${summary.total:.2f}")
        if summary.skipped_count:
            print(
                f"warning: {summary.skipped_count} card(s) without a price excluded from total",
                file=sys.stderr,
            )

    if args.strict and failed_records(priced):
        return EXIT_UNPRICED_RECORDS
    return EXIT_OK


def run() -> None:
    """Console-script wrapper around main()."""
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        code = EXIT_INTERRUPTED
    sys.exit(code)


if __name__ == "__main__":
    run()
