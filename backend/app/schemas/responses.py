"""Pydantic request/response schemas for API endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    """Envelope returned by every bill-processing and sync endpoint."""

    success: bool
    message: str
    data: Optional[Any] = None


class ProcessMultipleRequest(BaseModel):
    # Admin UI posts {"billIds": [...]}
    bill_ids: list[str] = Field(alias="billIds", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class ProcessingStatusRead(BaseModel):
    bill_id: str
    po_number: str
    supplier_name: str
    location: Optional[str]
    total_amount: float
    item_count: int
    sync_status: Optional[str]
    processing_status: str
    last_synced_at: Optional[datetime]
    last_processed_at: Optional[datetime]
    processed_by: Optional[str]
    processing_error: Optional[str]


class SyncLogRead(BaseModel):
    id: int
    source: str
    status: str
    bills_fetched: int
    orders_added: int
    orders_updated: int
    errors: int
    bills_processed: Optional[int]
    error_message: Optional[str]
    started_at: datetime
    finished_at: Optional[datetime]

    class Config:
        from_attributes = True


def summarize_errors(details: list[Any], limit: int = 5) -> list[Any]:
    """First `limit` error entries, plus an "...and N more" marker."""
    if len(details) <= limit:
        return list(details)
    return list(details[:limit]) + [f"...and {len(details) - limit} more"]

