"""
Batch driver: runs the processing pipeline over many bills, one at a time.

Bills are processed strictly in order so each PO's status transitions are
observable and the upstream API sees one bill fetch at a time. A failed
bill is recorded in its slot and the loop moves on.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from loguru import logger
from sqlmodel import Session, col, select

from app.models.purchase_order import (
    RETRYABLE_PROCESSING_STATUSES,
    PurchaseOrder,
    SyncStatus,
)
from app.sync.bill_source import BillSource
from app.sync.inventory import BillProcessingResult, process_bill
from app.sync.locations import LocationResolver
from app.sync.stock import StockPolicy


@dataclass
class BatchSummary:
    total_items: int = 0
    total_updated: int = 0
    total_created: int = 0
    total_skipped: int = 0
    total_errors: int = 0


@dataclass
class BatchResult:
    total_bills: int = 0
    processed_bills: int = 0
    successful_bills: int = 0
    failed_bills: int = 0
    summary: BatchSummary = field(default_factory=BatchSummary)
    bill_results: list[BillProcessingResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.successful_bills > 0

    @property
    def message(self) -> str:
        return f"{self.successful_bills}/{self.total_bills} bills processed successfully"


def process_many(
    session: Session,
    bill_ids: list[str],
    source: BillSource,
    resolver: Optional[LocationResolver] = None,
    policy: Optional[StockPolicy] = None,
) -> BatchResult:
    result = BatchResult(total_bills=len(bill_ids))
    logger.info(f"Processing {len(bill_ids)} bill(s) for inventory updates")

    for i, bill_id in enumerate(bill_ids, 1):
        logger.info(f"Bill {i}/{len(bill_ids)}: {bill_id}")
        bill_result = process_bill(session, bill_id, source, resolver=resolver, policy=policy)
        result.bill_results.append(bill_result)
        result.processed_bills += 1

        if not bill_result.success:
            result.failed_bills += 1
            continue
        result.successful_bills += 1
        stats = bill_result.stats
        if stats is not None:
            result.summary.total_items += stats.total_items
            result.summary.total_updated += stats.updated_items
            result.summary.total_created += stats.created_items
            result.summary.total_skipped += stats.skipped_items
            result.summary.total_errors += stats.errors

    logger.info(
        f"Batch done: {result.successful_bills} succeeded, {result.failed_bills} failed; "
        f"{result.summary.total_updated} updated, {result.summary.total_created} created, "
        f"{result.summary.total_errors} item error(s)"
    )
    return result


def pending_bill_ids(session: Session) -> list[str]:
    """Bill ids of synced POs that are not yet processed or previously failed."""
    stmt = (
        select(PurchaseOrder.zoho_bill_id)
        .where(
            PurchaseOrder.sync_status == SyncStatus.SYNCED.value,
            col(PurchaseOrder.zoho_bill_id).is_not(None),
            col(PurchaseOrder.processing_status).in_(RETRYABLE_PROCESSING_STATUSES),
        )
        .order_by(PurchaseOrder.id)
    )
    return [bill_id for bill_id in session.exec(stmt).all() if bill_id]


def process_all_synced(
    session: Session,
    source: BillSource,
    resolver: Optional[LocationResolver] = None,
    policy: Optional[StockPolicy] = None,
) -> BatchResult:
    bill_ids = pending_bill_ids(session)
    if not bill_ids:
        logger.info("No unprocessed synced bills found")
        return BatchResult()
    return process_many(session, bill_ids, source, resolver=resolver, policy=policy)
