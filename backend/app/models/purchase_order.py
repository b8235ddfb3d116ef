"""SQLModel models for purchase orders synced from Zoho bills."""
from enum import Enum
from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field

from app.core.timeutils import utcnow


class PurchaseOrderStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    CONFIRMED = "Confirmed"
    PARTIAL = "Partial"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class SyncStatus(str, Enum):
    """Relationship between a purchase order and its source bill."""

    SYNCING = "syncing"
    SYNCED = "synced"
    SYNC_FAILED = "sync_failed"


class ProcessingStatus(str, Enum):
    """Whether a bill's line items have been applied to inventory."""

    NOT_PROCESSED = "not_processed"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


# Statuses the batch driver is allowed to (re)process
RETRYABLE_PROCESSING_STATUSES = (
    ProcessingStatus.NOT_PROCESSED.value,
    ProcessingStatus.FAILED.value,
)


class PurchaseOrder(SQLModel, table=True):
    """
    Internal purchase order.

    For synced bills po_number is derived from the bill (PO-ZOHO-<number>),
    which makes re-syncing the same bill an update rather than an insert.
    """

    __tablename__ = "purchase_orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    po_number: str = Field(index=True, unique=True)

    # Supplier
    supplier_id: str = Field(index=True)
    supplier_name: str
    supplier_contact: Optional[str] = None
    supplier_email: Optional[str] = None

    order_date: date = Field(index=True)
    expected_delivery_date: date
    status: str = Field(default=PurchaseOrderStatus.DRAFT.value, index=True)
    total_amount: float = Field(default=0.0)
    terms: str = Field(default="Net 30 days")
    notes: Optional[str] = None
    created_by: str = Field(default="admin")
    updated_by: str = Field(default="admin")

    # Zoho sync metadata
    zoho_bill_id: Optional[str] = Field(default=None, index=True)
    zoho_location_name: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    sync_status: Optional[str] = Field(default=None, index=True)

    # Inventory processing metadata
    processing_status: str = Field(
        default=ProcessingStatus.NOT_PROCESSED.value, index=True
    )
    last_processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    processing_error: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PurchaseOrderItem(SQLModel, table=True):
    """A single line of a purchase order."""

    __tablename__ = "purchase_order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    purchase_order_id: int = Field(foreign_key="purchase_orders.id", index=True)

    material_id: str
    material_code: str = Field(index=True)
    material_name: str
    quantity: float = Field(default=0.0)
    unit_price: float = Field(default=0.0)
    total_price: float = Field(default=0.0)
    received_quantity: float = Field(default=0.0)
    unit_of_measure: str = Field(default="pcs")
    notes: Optional[str] = None

    order: int = Field(default=0)  # line order within the PO
