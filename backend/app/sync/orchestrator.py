"""
Sync orchestrator: Zoho bills → purchase orders → inventory.

Idempotency strategy:
  - Every bill maps to a deterministic po_number (PO-ZOHO-<number>).
  - An existing PO with that number is overwritten field by field and its
    lines replaced; otherwise a new PO is inserted. Processing metadata is
    never touched by sync, so a processed bill stays processed.
  - Each bill commits on its own; one bad bill is counted and the rest
    still sync.
  - If anything was added or updated, every synced PO still in
    not_processed/failed is pushed through the batch driver.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.timeutils import utcnow
from app.models.purchase_order import PurchaseOrder, PurchaseOrderItem, SyncStatus
from app.models.sync_log import SyncLog
from app.sync.batch import BatchResult, process_all_synced
from app.sync.bill_source import BillSource
from app.sync.locations import LocationResolver
from app.sync.mapper import SYNC_ACTOR, derive_po_number, map_bill_to_purchase_order
from app.sync.stock import StockPolicy


@dataclass
class SyncResult:
    total_from_source: int = 0
    added: int = 0
    updated: int = 0
    errors: int = 0
    error_details: list[dict] = field(default_factory=list)
    processing: Optional[BatchResult] = None

    @property
    def message(self) -> str:
        msg = f"Synced {self.added + self.updated} bills successfully"
        if self.processing is not None:
            msg += f" and processed {self.processing.successful_bills} bills"
        return msg


# ── helpers ──────────────────────────────────────────────────────────────────


def _upsert_purchase_order(session: Session, data: dict) -> tuple[PurchaseOrder, bool]:
    """
    Returns (purchase_order, was_inserted).
    was_inserted=False means it was updated.
    """
    lines_data = data.pop("items", [])
    now = utcnow()

    existing = session.exec(
        select(PurchaseOrder).where(PurchaseOrder.po_number == data["po_number"])
    ).first()
    inserted = False

    if existing:
        diffs = []
        for k, v in data.items():
            old = getattr(existing, k, None)
            if k not in ("last_synced_at", "sync_status") and old != v:
                diffs.append(f"{k}: {old!r} → {v!r}")
        if diffs:
            logger.debug(f"Updating {data['po_number']}: {', '.join(diffs[:5])}")

        # Full overwrite of mapped fields; processing metadata is not mapped
        for k, v in data.items():
            setattr(existing, k, v)
        existing.updated_by = SYNC_ACTOR
        existing.updated_at = now
        po = existing
    else:
        po = PurchaseOrder(**data)
        inserted = True

    po.sync_status = SyncStatus.SYNCED.value
    po.last_synced_at = now
    session.add(po)
    session.flush()

    # Replace lines
    old_lines = session.exec(
        select(PurchaseOrderItem).where(PurchaseOrderItem.purchase_order_id == po.id)
    ).all()
    for ol in old_lines:
        session.delete(ol)
    session.flush()

    for line_data in lines_data:
        session.add(PurchaseOrderItem(**line_data, purchase_order_id=po.id))

    return po, inserted


def _check_bill(bill: Any) -> None:
    if not isinstance(bill, dict):
        raise ValueError(f"bill is not an object: {bill!r}")
    if not (bill.get("bill_id") or bill.get("bill_number")):
        raise ValueError("bill has neither bill_id nor bill_number")


def _mark_sync_failed(session: Session, bill: dict) -> None:
    """Best effort: flag the bill's PO, if it exists, as sync_failed."""
    if not bill.get("bill_id") and not bill.get("bill_number"):
        return
    try:
        po_number = derive_po_number(bill)
        po = session.exec(
            select(PurchaseOrder).where(PurchaseOrder.po_number == po_number)
        ).first()
        if po is not None:
            po.sync_status = SyncStatus.SYNC_FAILED.value
            session.add(po)
            session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning(f"Could not mark bill {bill.get('bill_id')} as sync_failed: {exc}")


# ── main sync ─────────────────────────────────────────────────────────────────


def sync_all_bills(
    session: Session,
    source: BillSource,
    auto_process: bool = True,
    resolver: Optional[LocationResolver] = None,
    policy: Optional[StockPolicy] = None,
) -> SyncResult:
    """
    Full sync pipeline.

    1. Fetch every bill from the source (token + pagination + snapshot).
    2. Map and upsert each bill as a purchase order.
    3. If anything changed, process all pending synced bills.
    4. Record a SyncLog row.
    """
    result = SyncResult()
    log = SyncLog(status="error", started_at=utcnow())

    try:
        bills = source.fetch_all_bills()
        result.total_from_source = len(bills)
        logger.info(f"Syncing {len(bills)} bills to purchase orders")

        for bill in bills:
            try:
                _check_bill(bill)
                data = map_bill_to_purchase_order(bill)
                po, inserted = _upsert_purchase_order(session, data)
                session.commit()
            except Exception as exc:
                session.rollback()
                ref = bill if isinstance(bill, dict) else {}
                result.errors += 1
                result.error_details.append(
                    {
                        "bill_id": ref.get("bill_id"),
                        "bill_number": ref.get("bill_number"),
                        "error": str(exc),
                    }
                )
                logger.error(f"Error syncing bill {ref.get('bill_id')}: {exc}")
                _mark_sync_failed(session, ref)
                continue

            if inserted:
                result.added += 1
                logger.info(f"Added {po.po_number} - {po.supplier_name}")
            else:
                result.updated += 1
                logger.info(f"Updated {po.po_number} - {po.supplier_name}")

        logger.info(
            f"Sync summary: {result.total_from_source} fetched, {result.added} added, "
            f"{result.updated} updated, {result.errors} error(s)"
        )

        if auto_process and (result.added or result.updated):
            result.processing = process_all_synced(
                session, source, resolver=resolver, policy=policy
            )

        log.status = "success" if not result.errors else "partial"

    except Exception as exc:
        session.rollback()
        log.status = "error"
        log.error_message = str(exc)
        logger.error(f"Bill sync failed: {exc}")
        raise

    finally:
        log.bills_fetched = result.total_from_source
        log.orders_added = result.added
        log.orders_updated = result.updated
        log.errors = result.errors
        if result.processing is not None:
            log.bills_processed = result.processing.successful_bills
        log.error_details = (
            json.dumps(result.error_details[:100]) if result.error_details else None
        )
        log.finished_at = utcnow()
        session.add(log)
        session.commit()

    return result
