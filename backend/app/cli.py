"""
Command-line entry point for running sync and processing outside the API.

    localbeet-sync sync [--from-snapshot] [--no-process]
    localbeet-sync fetch
    localbeet-sync process BILL_ID
    localbeet-sync process-many BILL_ID [BILL_ID ...]
    localbeet-sync process-all
    localbeet-sync resolve LOCATION
"""
from __future__ import annotations

import argparse
from collections import Counter
from contextlib import closing
from typing import Optional

from loguru import logger
from sqlmodel import Session

from app.core.config import settings
from app.core.database import create_db_and_tables, engine
from app.core.logging import setup_logging
from app.sync.batch import BatchResult, process_all_synced, process_many
from app.sync.bill_source import BillSource, SnapshotBillSource, ZohoBillSource
from app.sync.inventory import process_bill
from app.sync.locations import get_location_resolver
from app.sync.mapper import parse_amount
from app.sync.orchestrator import sync_all_bills


def analyze_bills(bills: list[dict]) -> dict:
    """Counts by vendor and by status, plus the grand total."""
    by_vendor = Counter((b.get("vendor_name") or "Unknown Vendor") for b in bills)
    by_status = Counter((b.get("status") or "unknown") for b in bills)
    return {
        "total_bills": len(bills),
        "by_vendor": dict(by_vendor.most_common()),
        "by_status": dict(by_status.most_common()),
        "total_amount": round(sum(parse_amount(b.get("total")) for b in bills), 3),
    }


def _print_batch(result: BatchResult) -> None:
    print(
        f"Bills: {result.total_bills} total, {result.successful_bills} succeeded, "
        f"{result.failed_bills} failed"
    )
    s = result.summary
    print(
        f"Items: {s.total_items} total, {s.total_updated} updated, {s.total_created} created, "
        f"{s.total_skipped} skipped, {s.total_errors} error(s)"
    )
    for r in result.bill_results:
        if not r.success:
            print(f"  FAILED {r.bill_id}: {r.error}")


def _source(from_snapshot: bool) -> BillSource:
    if from_snapshot:
        return SnapshotBillSource(settings.BILLS_SNAPSHOT_FILE)
    return ZohoBillSource()


def _cmd_sync(args: argparse.Namespace) -> int:
    with closing(_source(args.from_snapshot)) as source, Session(engine) as session:
        result = sync_all_bills(session, source, auto_process=not args.no_process)
    print(result.message)
    print(
        f"Fetched {result.total_from_source}: {result.added} added, "
        f"{result.updated} updated, {result.errors} error(s)"
    )
    for detail in result.error_details:
        print(f"  FAILED {detail['bill_id']} ({detail['bill_number']}): {detail['error']}")
    if result.processing is not None:
        _print_batch(result.processing)
    return 0 if not result.errors else 1


def _cmd_fetch(args: argparse.Namespace) -> int:
    with closing(ZohoBillSource()) as source:
        bills = source.fetch_all_bills()
    summary = analyze_bills(bills)
    print(f"Fetched {summary['total_bills']} bills → {settings.BILLS_SNAPSHOT_FILE}")
    print("By vendor:")
    for vendor, count in summary["by_vendor"].items():
        print(f"  {vendor}: {count}")
    print("By status:")
    for status, count in summary["by_status"].items():
        print(f"  {status}: {count}")
    print(f"Total amount: {summary['total_amount']:.3f}")
    return 0


def _cmd_process(args: argparse.Namespace) -> int:
    with closing(_source(args.from_snapshot)) as source, Session(engine) as session:
        result = process_bill(session, args.bill_id, source)
    if result.already_processed:
        print(f"Bill {args.bill_id} already processed")
    elif result.success and result.stats is not None:
        s = result.stats
        print(
            f"Bill {result.bill_number} → {result.module}: {s.updated_items} updated, "
            f"{s.created_items} created, {s.skipped_items} skipped, {s.errors} error(s)"
        )
    else:
        print(f"Bill {args.bill_id} failed: {result.error}")
    return 0 if result.success else 1


def _cmd_process_many(args: argparse.Namespace) -> int:
    with closing(_source(args.from_snapshot)) as source, Session(engine) as session:
        result = process_many(session, args.bill_ids, source)
    _print_batch(result)
    return 0 if result.success else 1


def _cmd_process_all(args: argparse.Namespace) -> int:
    with closing(_source(args.from_snapshot)) as source, Session(engine) as session:
        result = process_all_synced(session, source)
    if not result.total_bills:
        print("No unprocessed synced bills found")
        return 0
    _print_batch(result)
    return 0 if result.success else 1


def _cmd_resolve(args: argparse.Namespace) -> int:
    module = get_location_resolver().resolve(args.location)
    if module is None:
        print(f'"{args.location}" is not mapped to any module')
        return 1
    print(f'"{args.location}" → {module.value}')
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localbeet-sync",
        description="Sync Zoho bills into purchase orders and update location inventory.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("sync", help="Fetch all bills, upsert purchase orders, process new ones.")
    p.add_argument("--from-snapshot", action="store_true", help="Replay the last raw bills snapshot.")
    p.add_argument("--no-process", action="store_true", help="Sync only; skip inventory processing.")
    p.set_defaults(func=_cmd_sync)

    p = sub.add_parser("fetch", help="Fetch all bills and write the raw snapshot only.")
    p.set_defaults(func=_cmd_fetch)

    p = sub.add_parser("process", help="Apply one bill to inventory.")
    p.add_argument("bill_id")
    p.add_argument("--from-snapshot", action="store_true")
    p.set_defaults(func=_cmd_process)

    p = sub.add_parser("process-many", help="Apply several bills to inventory, in order.")
    p.add_argument("bill_ids", nargs="+")
    p.add_argument("--from-snapshot", action="store_true")
    p.set_defaults(func=_cmd_process_many)

    p = sub.add_parser("process-all", help="Apply every synced, unprocessed bill.")
    p.add_argument("--from-snapshot", action="store_true")
    p.set_defaults(func=_cmd_process_all)

    p = sub.add_parser("resolve", help="Show which module a location name maps to.")
    p.add_argument("location")
    p.set_defaults(func=_cmd_resolve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    if args.command != "resolve":
        create_db_and_tables()
    try:
        return args.func(args)
    except Exception as exc:
        logger.error(f"{args.command} failed: {exc}")
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
