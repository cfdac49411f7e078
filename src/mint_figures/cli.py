from __future__ import annotations

import argparse
import json
import re
import sys
from datetime import date
from pathlib import Path

import requests

from .config import PROGRAMS, RunConfig
from .errors import UpstreamBlockedError
from .http_client import HttpClient
from .log import setup_logging
from .periods import filter_year
from .pipelines import PIPELINES, CoinProductionPipeline, build_totals

EXIT_INVALID_ARGS = 2
EXIT_ABORTED = 3

# The Mint's first year of operation.
FIRST_YEAR = 1792

_YEAR = re.compile(r"\d{4}")


def parse_year(text: str | None, *, today: date) -> int | None:
    """Validate an optional YEAR argument; raises ValueError with a message."""

    if text is None:
        return None
    if not _YEAR.fullmatch(text.strip()):
        raise ValueError(f"Invalid year {text!r}: expected a four-digit year")
    year = int(text)
    if not FIRST_YEAR <= year <= today.year:
        raise ValueError(
            f"Invalid year {year}: expected {FIRST_YEAR} to {today.year}"
        )
    return year


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--out-dir", type=Path, default=Path("lists"))
    p.add_argument("--cache-dir", type=Path, default=Path("saved-reports"))
    p.add_argument(
        "--delay",
        type=float,
        default=0.25,
        help="Seconds to wait between uncached report requests",
    )
    p.add_argument("--timeout", type=int, default=45)
    p.add_argument(
        "--max-consecutive-missing",
        type=int,
        default=3,
        help="Abort after this many reports in a row without data",
    )
    p.add_argument("--log-file", type=Path, default=None)
    p.add_argument("-v", "--verbose", action="store_true")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mint-figures")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sales_p = sub.add_parser(
        "cumulative-sales",
        help="Fold the weekly cumulative sales reports into lists/cumulative-sales.json",
    )
    sales_p.add_argument("year", nargs="?", default=None)
    sales_p.add_argument(
        "--no-extrapolate",
        action="store_true",
        help="Only request weeks listed on the index page",
    )
    _add_common_args(sales_p)

    weekly_p = sub.add_parser(
        "weekly-sales",
        help="Fold the older HTML weekly sales tables",
    )
    weekly_p.add_argument("year", nargs="?", default=None)
    _add_common_args(weekly_p)

    production_p = sub.add_parser(
        "coin-production",
        help="Build lists/circulating-coins-production.json",
    )
    production_p.add_argument("year", nargs="?", default=None)
    _add_common_args(production_p)

    totals_p = sub.add_parser(
        "totals",
        help="Derive American Innovation $1 totals from the cumulative sales list",
    )
    _add_common_args(totals_p)

    periods_p = sub.add_parser(
        "periods",
        help="List the report periods currently offered upstream",
    )
    periods_p.add_argument("year", nargs="?", default=None)
    periods_p.add_argument(
        "--series",
        choices=sorted(PIPELINES),
        default="cumulative-sales",
    )
    periods_p.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON to stdout",
    )
    periods_p.add_argument(
        "--no-extrapolate",
        action="store_true",
        help="Only list weeks named on the index page",
    )
    _add_common_args(periods_p)

    return parser


def _config_from_args(args: argparse.Namespace, *, year: int | None, today: date) -> RunConfig:
    return RunConfig(
        out_dir=args.out_dir,
        cache_dir=args.cache_dir,
        request_delay_s=float(args.delay),
        timeout_s=int(args.timeout),
        max_consecutive_missing=int(args.max_consecutive_missing),
        extrapolate=not bool(getattr(args, "no_extrapolate", False)),
        year=year,
        today=today,
    )


def _print_periods(pipeline, *, year: int | None, as_json: bool) -> None:
    if isinstance(pipeline, CoinProductionPipeline):
        listing = {
            PROGRAMS[code]: [p.key for p in filter_year(e.periods, year)]
            for code, e in pipeline.enumerate().items()
        }
    else:
        enumeration = pipeline.enumerate()
        enumeration.log_report(pipeline.series)
        listing = {pipeline.series: [p.key for p in filter_year(enumeration.periods, year)]}

    if as_json:
        print(json.dumps(listing, indent=2, ensure_ascii=False))
        return
    for group, keys in listing.items():
        print(f"{group}: {len(keys)} period(s)")
        for key in keys:
            print(f"- {key}")


def main(argv: list[str] | None = None, *, session: requests.Session | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=bool(args.verbose), log_file=args.log_file)

    today = date.today()
    try:
        year = parse_year(getattr(args, "year", None), today=today)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_INVALID_ARGS

    cfg = _config_from_args(args, year=year, today=today)

    if args.cmd == "totals":
        try:
            written = build_totals(cfg)
        except OSError as e:
            print(str(e), file=sys.stderr)
            return 1
        if written is not None:
            print(str(written))
        return 0

    http = HttpClient(
        session or requests.Session(),
        timeout_s=cfg.timeout_s,
        max_retries=cfg.max_retries,
    )
    series = args.series if args.cmd == "periods" else args.cmd
    pipeline = PIPELINES[series](http=http, config=cfg)

    if args.cmd == "periods":
        try:
            _print_periods(pipeline, year=year, as_json=bool(args.json))
        except UpstreamBlockedError as e:
            print(str(e), file=sys.stderr)
            return EXIT_ABORTED
        return 0

    summary = pipeline.run()
    stats = " ".join(f"{k}={v}" for k, v in sorted(summary["stats"].items()))
    print(f"{summary['series']}: planned={summary['planned']} {stats}".rstrip())
    if summary["aborted"]:
        print(f"{summary['series']}: aborted: {summary['aborted']}", file=sys.stderr)
        return EXIT_ABORTED
    return 0
