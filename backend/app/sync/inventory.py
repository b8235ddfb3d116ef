"""
Bill → inventory processing pipeline.

For one bill id:
  1. If its purchase order is already "processed", stop (no stock changes).
  2. Fetch the bill fresh from the bill source; line items come from the
     bill, not from the stored purchase order.
  3. Resolve the bill location to a module. Unroutable bills are reported
     and left in their current processing status.
  4. Claim the purchase order: not_processed/failed/processing → processing.
  5. Apply every line to the module's stock. A bad line is counted and
     skipped; its siblings still apply. Each applied line is written to the
     receipt ledger in the same commit, so re-running a bill that stopped
     mid-way never applies a line twice.
  6. processing → processed, or → failed with the error message when
     anything escapes the line loop.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.timeutils import utcnow
from app.models.purchase_order import ProcessingStatus, PurchaseOrder
from app.sync.bill_source import BillSource
from app.sync.locations import LocationResolver, ModuleId, get_location_resolver
from app.sync.mapper import bill_location
from app.sync.stock import (
    PROCESSOR,
    StockKind,
    StockPolicy,
    already_received,
    collection_for_line,
    parse_line,
    receive_line,
    record_receipt,
)


@dataclass
class ProcessingStats:
    module: str
    total_items: int = 0
    updated_items: int = 0
    created_items: int = 0
    raw_materials_updated: int = 0
    raw_materials_created: int = 0
    finished_goods_updated: int = 0
    finished_goods_created: int = 0
    skipped_items: int = 0
    already_applied: int = 0
    errors: int = 0
    error_details: list[dict] = field(default_factory=list)

    def count(self, kind: StockKind, created: bool) -> None:
        if created:
            self.created_items += 1
        else:
            self.updated_items += 1
        if kind == StockKind.FINISHED_PRODUCT:
            if created:
                self.finished_goods_created += 1
            else:
                self.finished_goods_updated += 1
        elif created:
            self.raw_materials_created += 1
        else:
            self.raw_materials_updated += 1


@dataclass
class BillProcessingResult:
    bill_id: str
    success: bool = False
    bill_number: Optional[str] = None
    location: Optional[str] = None
    module: Optional[str] = None
    already_processed: bool = False
    unroutable: bool = False
    inventory_updated: bool = False
    error: Optional[str] = None
    stats: Optional[ProcessingStats] = None


# ── Status tracking ───────────────────────────────────────────────────────────


def find_purchase_order(session: Session, bill_id: str) -> Optional[PurchaseOrder]:
    return session.exec(
        select(PurchaseOrder).where(PurchaseOrder.zoho_bill_id == bill_id)
    ).first()


def set_processing_status(
    session: Session,
    bill_id: str,
    status: ProcessingStatus,
    error: Optional[str] = None,
) -> bool:
    """Persist a processing status. Returns False when no PO tracks this bill."""
    try:
        po = find_purchase_order(session, bill_id)
        if po is None:
            logger.warning(f"Bill {bill_id} not found in purchase orders; status {status.value} not recorded")
            return False
        po.processing_status = status.value
        po.last_processed_at = utcnow()
        po.processing_error = error
        if status == ProcessingStatus.PROCESSED:
            po.processed_by = PROCESSOR
        session.add(po)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"Could not set bill {bill_id} status to {status.value}: {exc}")
        return False
    logger.debug(f"Bill {bill_id} status → {status.value}")
    return True


def _claim(session: Session, bill_id: str) -> str:
    """
    Move the bill's PO to "processing" under a row lock.

    Returns "claimed", "untracked" (no PO) or "already_processed" when
    another run finished the bill since the entry check.
    """
    stmt = (
        select(PurchaseOrder)
        .where(PurchaseOrder.zoho_bill_id == bill_id)
        .with_for_update()
    )
    po = session.exec(stmt).first()
    if po is None:
        logger.warning(f"Bill {bill_id} has no purchase order; processing without status tracking")
        return "untracked"
    if po.processing_status == ProcessingStatus.PROCESSED.value:
        session.rollback()
        return "already_processed"
    po.processing_status = ProcessingStatus.PROCESSING.value
    po.last_processed_at = utcnow()
    po.processing_error = None
    session.add(po)
    session.commit()
    return "claimed"


# ── Stock application ─────────────────────────────────────────────────────────


def apply_bill_to_stock(
    session: Session,
    bill: dict,
    bill_id: str,
    module: ModuleId,
    policy: StockPolicy,
) -> ProcessingStats:
    line_items = bill.get("line_items") or []
    stats = ProcessingStats(module=module.value, total_items=len(line_items))

    for index, item in enumerate(line_items):
        account_name = item.get("account_name", "") if isinstance(item, dict) else ""
        sku = item.get("sku") if isinstance(item, dict) else None
        try:
            collection = collection_for_line(module, account_name)
            if collection is None:
                stats.skipped_items += 1
                logger.info(
                    f"Bill {bill_id}: skipping {sku} - account '{account_name}' is not Inventory Raw or Inventory Asset"
                )
                continue
            line = parse_line(item, index)
            if already_received(session, bill_id, line.line_key):
                stats.already_applied += 1
                logger.info(f"Bill {bill_id}: {line.sku} ({line.line_key}) already applied, skipping")
                continue
            created = receive_line(session, collection, line, bill_id, policy)
            record_receipt(session, collection, line, bill_id)
            session.commit()
        except IntegrityError:
            # Duplicate code or ledger row means a mapping bug, not bad data
            session.rollback()
            raise
        except Exception as exc:
            session.rollback()
            stats.errors += 1
            stats.error_details.append(
                {
                    "index": index,
                    "item_id": item.get("item_id") if isinstance(item, dict) else None,
                    "sku": sku,
                    "name": item.get("name") if isinstance(item, dict) else None,
                    "account_name": account_name,
                    "error": str(exc),
                }
            )
            logger.error(f"Bill {bill_id}: error applying line {index} ({sku}): {exc}")
            continue

        stats.count(collection.kind, created)
        logger.debug(
            f"Bill {bill_id}: {'created' if created else 'updated'} {collection.table_name} "
            f"{line.sku} +{line.quantity:g} @ {line.rate:g}"
        )

    return stats


# ── Pipeline ──────────────────────────────────────────────────────────────────


def process_bill(
    session: Session,
    bill_id: str,
    source: BillSource,
    resolver: Optional[LocationResolver] = None,
    policy: Optional[StockPolicy] = None,
) -> BillProcessingResult:
    resolver = resolver or get_location_resolver()
    policy = policy or StockPolicy.from_settings()
    result = BillProcessingResult(bill_id=bill_id)

    po = find_purchase_order(session, bill_id)
    if po is not None and po.processing_status == ProcessingStatus.PROCESSED.value:
        logger.info(f"Bill {bill_id} ({po.po_number}) already processed")
        result.success = True
        result.already_processed = True
        result.bill_number = po.po_number
        result.location = po.zoho_location_name
        return result

    try:
        bill = source.fetch_bill(bill_id)
    except Exception as exc:
        result.error = f"Failed to fetch bill {bill_id}: {exc}"
        logger.error(result.error)
        set_processing_status(session, bill_id, ProcessingStatus.FAILED, error=result.error)
        return result

    result.bill_number = bill.get("bill_number")
    result.location = bill_location(bill)

    module = resolver.resolve(result.location)
    if module is None:
        result.unroutable = True
        result.error = f'Location "{result.location}" is not mapped to any module'
        logger.warning(f"Bill {bill_id}: {result.error}")
        return result
    result.module = module.value
    logger.info(
        f"Processing bill {result.bill_number} ({bill_id}): {result.location} → {module.value}, "
        f"{len(bill.get('line_items') or [])} line(s)"
    )

    try:
        if _claim(session, bill_id) == "already_processed":
            logger.info(f"Bill {bill_id} was processed by another run")
            result.success = True
            result.already_processed = True
            return result
        stats = apply_bill_to_stock(session, bill, bill_id, module, policy)
    except Exception as exc:
        session.rollback()
        result.error = str(exc)
        logger.error(f"Inventory update failed for bill {bill_id}: {exc}")
        set_processing_status(session, bill_id, ProcessingStatus.FAILED, error=result.error)
        return result

    set_processing_status(session, bill_id, ProcessingStatus.PROCESSED)
    result.success = True
    result.inventory_updated = True
    result.stats = stats
    logger.info(
        f"Bill {result.bill_number} ({bill_id}) processed: {stats.updated_items} updated, "
        f"{stats.created_items} created, {stats.skipped_items} skipped, {stats.errors} error(s)"
    )
    return result
