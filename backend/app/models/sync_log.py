"""SQLModel model for the bill sync audit log."""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from app.core.timeutils import utcnow


class SyncLog(SQLModel, table=True):
    """Audit log of every bill sync run."""

    __tablename__ = "sync_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    source: str = Field(default="zoho-bills")
    status: str  # "success", "partial", "error"
    bills_fetched: int = Field(default=0)
    orders_added: int = Field(default=0)
    orders_updated: int = Field(default=0)
    errors: int = Field(default=0)
    bills_processed: Optional[int] = None
    error_message: Optional[str] = None
    error_details: Optional[str] = None  # JSON list of per-bill errors
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
