"""
SQLModel models for per-module stock.

Each module keeps its own raw-material table keyed by material_code. The
central kitchen additionally keeps finished products keyed by product_code.
All stock tables share the same quantity/price/threshold columns.
"""
from typing import Optional
from datetime import datetime
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from app.core.timeutils import utcnow


class StockItemBase(SQLModel):
    category: str = Field(default="General")
    unit_of_measure: str = Field(default="pcs")
    unit_price: float = Field(default=0.0)
    current_stock: float = Field(default=0.0)
    minimum_stock: float = Field(default=0.0)
    maximum_stock: float = Field(default=1000.0)
    reorder_point: float = Field(default=10.0)
    is_active: bool = Field(default=True)
    status: str = Field(default="In Stock")
    notes: Optional[str] = None
    created_by: str = Field(default="admin")
    updated_by: str = Field(default="admin")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RawMaterialBase(StockItemBase):
    material_code: str = Field(index=True, unique=True)
    material_name: str


class FinishedProductBase(StockItemBase):
    product_code: str = Field(index=True, unique=True)
    product_name: str
    sub_category: str = Field(default="General")


# ── Raw materials, one table per module ──────────────────────────────────────


class CentralKitchenRawMaterial(RawMaterialBase, table=True):
    __tablename__ = "central_kitchen_raw_materials"

    id: Optional[int] = Field(default=None, primary_key=True)


class KuwaitCityRawMaterial(RawMaterialBase, table=True):
    __tablename__ = "kuwait_city_raw_materials"

    id: Optional[int] = Field(default=None, primary_key=True)


class VibeComplexRawMaterial(RawMaterialBase, table=True):
    __tablename__ = "vibe_complex_raw_materials"

    id: Optional[int] = Field(default=None, primary_key=True)


class Mall360RawMaterial(RawMaterialBase, table=True):
    __tablename__ = "mall_360_raw_materials"

    id: Optional[int] = Field(default=None, primary_key=True)


class TaibaKitchenRawMaterial(RawMaterialBase, table=True):
    __tablename__ = "taiba_kitchen_raw_materials"

    id: Optional[int] = Field(default=None, primary_key=True)


# ── Finished products ─────────────────────────────────────────────────────────


class CentralKitchenFinishedProduct(FinishedProductBase, table=True):
    __tablename__ = "central_kitchen_finished_products"

    id: Optional[int] = Field(default=None, primary_key=True)


# ── Receipt ledger ────────────────────────────────────────────────────────────


class StockReceipt(SQLModel, table=True):
    """
    One row per bill line applied to stock.

    Written in the same transaction as the stock change, so a bill that is
    re-run after a crash mid-way skips the lines it already applied.
    """

    __tablename__ = "stock_receipts"
    __table_args__ = (UniqueConstraint("bill_id", "line_key", name="uq_stock_receipt_line"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    bill_id: str = Field(index=True)
    line_key: str
    module: str
    table_name: str
    item_code: str = Field(index=True)
    quantity: float
    unit_price: float
    applied_at: datetime = Field(default_factory=utcnow)
