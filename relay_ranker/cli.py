"""
relay-ranker command line entry point.

Fetches the relay catalog, probes every matching relay, prints the fastest
ones and optionally writes the full ranking to a text report.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from relay_ranker.config import Settings
from relay_ranker.services.catalog import CatalogError
from relay_ranker.services.host_prober import InvalidAddressError
from relay_ranker.services.latency_monitor import get_ranking
from relay_ranker.services.report import format_top, write_report


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {parsed}")
    return parsed


def _positive_float(value: str) -> float:
    parsed = float(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {parsed}")
    return parsed


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    defaults = Settings.from_env()
    parser = argparse.ArgumentParser(
        prog="relay-ranker",
        description="Ping every relay of the catalog and list the fastest ones.",
    )
    parser.add_argument(
        "--catalog-url",
        default=defaults.catalog_url,
        help=f"Relay catalog URL (default: {defaults.catalog_url})",
    )
    parser.add_argument(
        "--relay-type",
        default=defaults.relay_type,
        help=f"Only probe relays of this type (default: {defaults.relay_type})",
    )
    parser.add_argument(
        "--include-inactive",
        action=argparse.BooleanOptionalAction,
        default=defaults.include_inactive,
        help=f"Also probe relays marked inactive (default: {defaults.include_inactive})",
    )
    parser.add_argument(
        "--count",
        type=_positive_int,
        default=defaults.probe_count,
        help=f"Probes per relay (default: {defaults.probe_count})",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=defaults.probe_timeout_seconds,
        help=f"Per-probe timeout in seconds (default: {defaults.probe_timeout_seconds})",
    )
    parser.add_argument(
        "--max-concurrency",
        type=_positive_int,
        default=defaults.max_concurrency,
        help="Maximum number of relays probed at the same time (default: unbounded)",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=defaults.top_n,
        help=f"Number of relays to print (default: {defaults.top_n})",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=defaults.report_path,
        help="Optional: write the full ranking to this file",
    )
    parser.add_argument(
        "--abort-on-invalid",
        action=argparse.BooleanOptionalAction,
        default=defaults.abort_on_invalid_address,
        help=(
            "Abort instead of skipping relays with an invalid address "
            f"(default: {defaults.abort_on_invalid_address})"
        ),
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    values = Settings.from_env().model_dump()
    values.update(
        {
            "catalog_url": args.catalog_url,
            "relay_type": args.relay_type,
            "include_inactive": args.include_inactive,
            "probe_count": args.count,
            "probe_timeout_seconds": args.timeout,
            "max_concurrency": args.max_concurrency,
            "top_n": max(0, args.top),
            "report_path": args.output,
            "abort_on_invalid_address": args.abort_on_invalid,
        }
    )
    return Settings.model_validate(values)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = settings_from_args(args)
    except ValidationError as exc:
        print(f"[ERROR] invalid settings: {exc}")
        return 2

    try:
        result = asyncio.run(get_ranking(settings))
    except CatalogError as exc:
        print(f"[ERROR] {exc}")
        return 1
    except InvalidAddressError as exc:
        print(f"[ERROR] {exc}")
        return 1

    for line in format_top(result, settings.top_n):
        print(line)

    for diagnostic in result.diagnostics:
        print(f"[WARN] skipped {diagnostic.hostname}: {diagnostic.error}")

    if settings.report_path:
        report_path = Path(settings.report_path)
        write_report(result, report_path)
        print(f"[INFO] report written to: {report_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
