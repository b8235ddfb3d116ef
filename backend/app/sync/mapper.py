"""
Zoho bill → purchase order mapper.

Pure and total: a bill with missing or malformed fields still maps, with
documented defaults (vendor "Unknown Vendor", numbers 0, dates today, status
Draft). Returns a dict shaped like the PurchaseOrder columns plus an "items"
list shaped like PurchaseOrderItem columns.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from app.core.timeutils import utcnow
from app.models.purchase_order import PurchaseOrderStatus, SyncStatus

SYNC_ACTOR = "zoho-sync"

_STATUS_MAP: dict[str, PurchaseOrderStatus] = {
    "draft": PurchaseOrderStatus.DRAFT,
    "open": PurchaseOrderStatus.SENT,
    "overdue": PurchaseOrderStatus.SENT,
    "paid": PurchaseOrderStatus.COMPLETED,
    "partially_paid": PurchaseOrderStatus.PARTIAL,
    "void": PurchaseOrderStatus.CANCELLED,
    "cancelled": PurchaseOrderStatus.CANCELLED,
}


def parse_amount(value: Any) -> float:
    """Lenient float: '12.5', 12.5, '1,200' → float; anything else → 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return 0.0


def _date(raw: Any) -> Optional[date]:
    if not raw:
        return None
    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S%z", "%d-%m-%Y"):
        try:
            return datetime.strptime(str(raw).strip(), fmt).date()
        except ValueError:
            continue
    return None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def map_bill_status(zoho_status: Optional[str]) -> PurchaseOrderStatus:
    if not zoho_status:
        return PurchaseOrderStatus.DRAFT
    return _STATUS_MAP.get(str(zoho_status).strip().lower(), PurchaseOrderStatus.DRAFT)


def derive_po_number(bill: dict) -> str:
    """PO-ZOHO-<bill number, else bill id>, upper-cased."""
    ref = _text(bill.get("bill_number")) or _text(bill.get("bill_id"))
    return f"PO-ZOHO-{ref}".upper()


def line_total(item: dict) -> float:
    """External item_total when present and non-zero, else quantity × rate."""
    total = parse_amount(item.get("item_total"))
    if total:
        return total
    return parse_amount(item.get("quantity")) * parse_amount(item.get("rate"))


def map_line_item(item: dict, order: int = 0) -> dict:
    item_id = _text(item.get("item_id"))
    quantity = parse_amount(item.get("quantity"))
    return {
        "material_id": item_id,
        "material_code": _text(item.get("sku")) or item_id,
        "material_name": _text(item.get("name")) or _text(item.get("description")) or "Unknown Item",
        "quantity": quantity,
        "unit_price": parse_amount(item.get("rate")),
        "total_price": line_total(item),
        "received_quantity": quantity,
        "unit_of_measure": _text(item.get("unit")) or "pcs",
        "notes": _text(item.get("description")),
        "order": order,
    }


def bill_location(bill: dict) -> str:
    return _text(bill.get("location_name")) or _text(bill.get("place_of_supply"))


def map_bill_to_purchase_order(bill: dict) -> dict[str, Any]:
    contact = bill.get("contact_person_details") or {}
    if not isinstance(contact, dict):
        contact = {}
    bill_id = _text(bill.get("bill_id"))
    today = date.today()

    notes = f"Synced from Zoho Inventory - Bill ID: {bill_id}"
    if bill.get("notes"):
        notes += f" | {_text(bill.get('notes'))}"

    line_items = bill.get("line_items") or []
    if not isinstance(line_items, list):
        line_items = []

    return {
        "po_number": derive_po_number(bill),
        "supplier_id": _text(bill.get("vendor_id")) or "UNKNOWN",
        "supplier_name": _text(bill.get("vendor_name")) or "Unknown Vendor",
        "supplier_contact": _text(contact.get("phone")),
        "supplier_email": _text(contact.get("email")) or _text(bill.get("vendor_email")),
        "order_date": _date(bill.get("date")) or today,
        "expected_delivery_date": _date(bill.get("due_date")) or today,
        "status": map_bill_status(bill.get("status")).value,
        "total_amount": parse_amount(bill.get("total")),
        "terms": _text(bill.get("payment_terms_label") or bill.get("payment_terms")) or "Net 30 days",
        "notes": notes,
        "created_by": SYNC_ACTOR,
        "updated_by": SYNC_ACTOR,
        "zoho_bill_id": bill_id or None,
        "zoho_location_name": bill_location(bill),
        "last_synced_at": utcnow(),
        "sync_status": SyncStatus.SYNCING.value,
        "items": [
            map_line_item(item, order=i)
            for i, item in enumerate(line_items)
            if isinstance(item, dict)
        ],
    }
