"""
Command-line entry point.

    shopledger summary exports/ --branch CN1 --preset 7days
    shopledger summary exports/ --branch CN1 --preset custom --start 2024-08-01 --end 2024-08-15
    shopledger stock exports/ --branch CN1

Output is JSON on stdout; logs go to stderr.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime
from typing import Any, Sequence

import pytz

from .aggregation import AggregationEngine
from .analysis import low_stock_alerts, top_products, work_order_status_counts
from .config import Settings, get_settings
from .costing import CostResolver
from .dates import resolve
from .ledger import project, valuation
from .logging_config import setup_logging
from .reconciliation import reconcile_stock
from .sources import LoadedSnapshot, StoreSnapshotLoader

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shopledger", description="Financial summaries and stock projection for a shop snapshot"
    )
    parser.add_argument("--log-level", default=None, help="Override SHOPLEDGER_LOG_LEVEL")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    commands = parser.add_subparsers(dest="command", required=True)

    summary = commands.add_parser("summary", help="Aggregate revenue and profit")
    summary.add_argument("snapshot_dir", help="Directory holding the JSON table exports")
    summary.add_argument("--branch", default=None, help="Branch id; all branches when omitted")
    summary.add_argument("--preset", default="this-month", help="Date filter, e.g. today, 7days, q2")
    summary.add_argument("--start", default=None, help="Custom range start (YYYY-MM-DD)")
    summary.add_argument("--end", default=None, help="Custom range end (YYYY-MM-DD)")

    stock = commands.add_parser("stock", help="Project stock from the inventory ledger")
    stock.add_argument("snapshot_dir", help="Directory holding the JSON table exports")
    stock.add_argument("--branch", default=None, help="Branch id; all branches when omitted")

    return parser


def _load(snapshot_dir: str, settings: Settings) -> LoadedSnapshot:
    snapshot = StoreSnapshotLoader.from_directory(snapshot_dir, settings.timezone).load_all()
    for name, report in snapshot.quality_reports.items():
        for issue in report.issues:
            if issue.severity != "info":
                logger.warning("%s: %s (%s)", name, issue.description, issue.column)
    return snapshot


def run_summary(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    snapshot = _load(args.snapshot_dir, settings)
    now = datetime.now(pytz.timezone(settings.timezone))
    date_range = resolve(args.preset, now, args.start, args.end, settings.timezone)

    engine = AggregationEngine(CostResolver(snapshot.parts))
    result = engine.aggregate(
        snapshot.sales,
        snapshot.work_orders,
        snapshot.cash_transactions,
        args.branch,
        date_range,
    )
    return {
        "branch": args.branch,
        "range": {
            "label": date_range.label,
            "start": date_range.start.isoformat(),
            "end": date_range.end.isoformat(),
        },
        **result.to_dict(),
        "top_products": top_products(
            snapshot.sales, snapshot.work_orders, args.branch, date_range, settings.top_n
        ).to_dict(orient="records"),
        "work_orders_by_status": work_order_status_counts(
            snapshot.work_orders, args.branch, date_range
        ),
    }


def run_stock(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    snapshot = _load(args.snapshot_dir, settings)
    projection = project(snapshot.inventory_transactions)
    cross_check = reconcile_stock(projection, snapshot.parts, args.branch)

    levels = [
        {"part_id": part, "branch_id": branch, "stock": qty}
        for (part, branch), qty in sorted(projection.stock.items())
        if args.branch is None or branch == args.branch
    ]
    output: dict[str, Any] = {
        "branch": args.branch,
        "stock": levels,
        "negative": [asdict(item) for item in projection.negative],
        "cross_check": cross_check.summary(),
        "unmatched": [
            {**asdict(item), "match_type": item.match_type.value}
            for item in cross_check.unmatched_items()
        ],
    }
    if args.branch is not None:
        resolver = CostResolver(snapshot.parts)
        alerts = low_stock_alerts(
            projection, snapshot.parts, args.branch, settings.low_stock_threshold
        )
        output["valuation"] = valuation(projection, resolver, args.branch)
        output["low_stock"] = alerts.to_dict(orient="records")
    return output


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level, args.debug or settings.debug)

    handlers = {"summary": run_summary, "stock": run_stock}
    try:
        output = handlers[args.command](args, settings)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Could not read snapshot %s: %s", args.snapshot_dir, e)
        return 1

    json.dump(output, sys.stdout, ensure_ascii=False, indent=2, default=str)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
