"""
REST API routes for bill sync and inventory processing.

Endpoints:
  POST /bill-processing/process/{bill_id}
  POST /bill-processing/process-multiple
  POST /bill-processing/process-all-synced
  GET  /bill-processing/status/{bill_id}
  POST /sync-zoho-bills/purchase-orders
  GET  /sync-zoho-bills/logs

Every endpoint answers with the {success, message, data} envelope; failures
use a 4xx/5xx status code with success=false.
"""
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger
from sqlmodel import Session, col, func, select

from app.core.database import get_session
from app.models.purchase_order import PurchaseOrderItem
from app.models.sync_log import SyncLog
from app.schemas.responses import (
    ApiResponse,
    ProcessingStatusRead,
    ProcessMultipleRequest,
    SyncLogRead,
    summarize_errors,
)
from app.sync.batch import BatchResult, process_all_synced, process_many
from app.sync.bill_source import BillSource, get_bill_source
from app.sync.gateway import ZohoAPIError
from app.sync.inventory import BillProcessingResult, find_purchase_order, process_bill
from app.sync.orchestrator import sync_all_bills

bill_router = APIRouter(prefix="/bill-processing", tags=["bill-processing"])
sync_router = APIRouter(prefix="/sync-zoho-bills", tags=["sync"])


# ── Helpers ───────────────────────────────────────────────────────────────────


def _envelope(
    success: bool,
    message: str,
    data: Any = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    body = ApiResponse(success=success, message=message, data=data)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _bill_result_data(result: BillProcessingResult) -> dict:
    data = asdict(result)
    if result.stats is not None:
        data["stats"]["error_details"] = summarize_errors(result.stats.error_details)
    return data


def _batch_data(result: BatchResult) -> dict:
    failures = [
        f"{r.bill_id}: {r.error}" for r in result.bill_results if not r.success
    ]
    return {
        "total_bills": result.total_bills,
        "processed_bills": result.processed_bills,
        "successful_bills": result.successful_bills,
        "failed_bills": result.failed_bills,
        "summary": asdict(result.summary),
        "bill_results": [
            {
                "bill_id": r.bill_id,
                "bill_number": r.bill_number,
                "success": r.success,
                "module": r.module,
                "already_processed": r.already_processed,
                "unroutable": r.unroutable,
                "error": r.error,
            }
            for r in result.bill_results
        ],
        "errors": summarize_errors(failures),
    }


def _batch_response(result: BatchResult) -> JSONResponse:
    return _envelope(
        result.success,
        result.message,
        _batch_data(result),
        status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST,
    )


# ── Bill processing ───────────────────────────────────────────────────────────


@bill_router.post("/process/{bill_id}")
def process_single_bill(
    bill_id: str,
    session: Session = Depends(get_session),
    source: BillSource = Depends(get_bill_source),
):
    result = process_bill(session, bill_id, source)
    data = _bill_result_data(result)

    if result.already_processed:
        return _envelope(True, f"Bill {bill_id} already processed", data)
    if result.success:
        return _envelope(
            True, f"Bill {result.bill_number or bill_id} processed successfully", data
        )
    if result.unroutable:
        return _envelope(False, result.error or "Unmapped location", data, status.HTTP_400_BAD_REQUEST)
    return _envelope(
        False, f"Failed to process bill: {result.error}", data, status.HTTP_400_BAD_REQUEST
    )


@bill_router.post("/process-multiple")
def process_multiple_bills(
    body: ProcessMultipleRequest,
    session: Session = Depends(get_session),
    source: BillSource = Depends(get_bill_source),
):
    return _batch_response(process_many(session, body.bill_ids, source))


@bill_router.post("/process-all-synced")
def process_all_synced_bills(
    session: Session = Depends(get_session),
    source: BillSource = Depends(get_bill_source),
):
    result = process_all_synced(session, source)
    if result.total_bills == 0:
        return _envelope(True, "No unprocessed synced bills found", _batch_data(result))
    return _batch_response(result)


@bill_router.get("/status/{bill_id}")
def bill_status(bill_id: str, session: Session = Depends(get_session)):
    po = find_purchase_order(session, bill_id)
    if po is None:
        return _envelope(
            False,
            f"No purchase order found for bill {bill_id}",
            status_code=status.HTTP_404_NOT_FOUND,
        )
    item_count = session.exec(
        select(func.count(PurchaseOrderItem.id)).where(
            PurchaseOrderItem.purchase_order_id == po.id
        )
    ).one()
    data = ProcessingStatusRead(
        bill_id=bill_id,
        po_number=po.po_number,
        supplier_name=po.supplier_name,
        location=po.zoho_location_name,
        total_amount=po.total_amount,
        item_count=item_count,
        sync_status=po.sync_status,
        processing_status=po.processing_status,
        last_synced_at=po.last_synced_at,
        last_processed_at=po.last_processed_at,
        processed_by=po.processed_by,
        processing_error=po.processing_error,
    )
    return _envelope(True, f"Bill {bill_id} is {po.processing_status}", data)


# ── Sync ──────────────────────────────────────────────────────────────────────


@sync_router.post("/purchase-orders")
def sync_purchase_orders(
    auto_process: bool = Query(default=True, description="Process newly synced bills"),
    session: Session = Depends(get_session),
    source: BillSource = Depends(get_bill_source),
):
    try:
        result = sync_all_bills(session, source, auto_process=auto_process)
    except ZohoAPIError as exc:
        logger.error(f"Bill sync aborted: {exc}")
        return _envelope(
            False, f"Failed to sync bills: {exc}", status_code=status.HTTP_502_BAD_GATEWAY
        )

    data: dict[str, Optional[Any]] = {
        "total_from_source": result.total_from_source,
        "added": result.added,
        "updated": result.updated,
        "errors": result.errors,
        "error_details": summarize_errors(result.error_details),
        "processing": _batch_data(result.processing) if result.processing else None,
    }
    return _envelope(True, result.message, data)


@sync_router.get("/logs")
def list_sync_logs(
    limit: int = Query(default=50, ge=1, le=200),
    session: Session = Depends(get_session),
):
    stmt = select(SyncLog).order_by(col(SyncLog.started_at).desc()).limit(limit)
    logs = [SyncLogRead.model_validate(log) for log in session.exec(stmt).all()]
    return _envelope(True, f"{len(logs)} sync run(s)", logs)
