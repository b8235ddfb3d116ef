"""
Per-module stock collections and the add-or-create receipt logic.

Routing a bill line to a table:
  - non central-kitchen module → that module's raw-material table
  - central-kitchen + "Inventory Raw"   → central kitchen raw materials
  - central-kitchen + "Inventory Asset" → central kitchen finished products
  - central-kitchen + anything else     → skipped (not receivable inventory)

Receiving a line adds its quantity to current_stock and overwrites
unit_price with the bill rate; an unknown code creates the item seeded from
the bill and the StockPolicy defaults. Stock is never decreased here.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlmodel import Session, SQLModel, select

from app.core.config import settings
from app.core.timeutils import utcnow
from app.models.stock import (
    CentralKitchenFinishedProduct,
    CentralKitchenRawMaterial,
    KuwaitCityRawMaterial,
    Mall360RawMaterial,
    StockReceipt,
    TaibaKitchenRawMaterial,
    VibeComplexRawMaterial,
)
from app.sync.locations import ModuleId

PROCESSOR = "bill-processor"

ACCOUNT_INVENTORY_RAW = "inventory raw"
ACCOUNT_INVENTORY_ASSET = "inventory asset"


class LineItemError(ValueError):
    """A bill line that cannot be applied to stock."""


class StockKind(str, Enum):
    RAW_MATERIAL = "raw_material"
    FINISHED_PRODUCT = "finished_product"


@dataclass(frozen=True)
class StockPolicy:
    """Defaults for stock items first created from a bill."""

    minimum_stock: float = 0.0
    maximum_stock: float = 1000.0
    reorder_point: float = 10.0
    category: str = "General"
    unit_of_measure: str = "pcs"
    status: str = "In Stock"

    @classmethod
    def from_settings(cls) -> "StockPolicy":
        return cls(
            minimum_stock=settings.STOCK_DEFAULT_MIN,
            maximum_stock=settings.STOCK_DEFAULT_MAX,
            reorder_point=settings.STOCK_DEFAULT_REORDER,
            category=settings.STOCK_DEFAULT_CATEGORY,
            unit_of_measure=settings.STOCK_DEFAULT_UNIT,
        )


@dataclass(frozen=True)
class StockCollection:
    module: ModuleId
    kind: StockKind
    model: type[SQLModel]
    code_field: str
    name_field: str

    @property
    def table_name(self) -> str:
        return self.model.__tablename__


@dataclass(frozen=True)
class ReceiptLine:
    line_key: str
    sku: str
    name: str
    quantity: float
    rate: float
    unit: Optional[str]
    account_name: str


# ── Routing ───────────────────────────────────────────────────────────────────


def raw_material_collection(module: ModuleId) -> StockCollection:
    if module == ModuleId.CENTRAL_KITCHEN:
        model = CentralKitchenRawMaterial
    elif module == ModuleId.KUWAIT_CITY:
        model = KuwaitCityRawMaterial
    elif module == ModuleId.VIBE_COMPLEX:
        model = VibeComplexRawMaterial
    elif module == ModuleId.MALL_360:
        model = Mall360RawMaterial
    elif module == ModuleId.TAIBA_KITCHEN:
        model = TaibaKitchenRawMaterial
    else:
        raise ValueError(f"Unknown module: {module!r}")
    return StockCollection(
        module=module,
        kind=StockKind.RAW_MATERIAL,
        model=model,
        code_field="material_code",
        name_field="material_name",
    )


CENTRAL_KITCHEN_FINISHED = StockCollection(
    module=ModuleId.CENTRAL_KITCHEN,
    kind=StockKind.FINISHED_PRODUCT,
    model=CentralKitchenFinishedProduct,
    code_field="product_code",
    name_field="product_name",
)


def collection_for_line(module: ModuleId, account_name: str) -> Optional[StockCollection]:
    """Target table for a line, or None when the line must be skipped."""
    if module != ModuleId.CENTRAL_KITCHEN:
        return raw_material_collection(module)
    if account_name is not None and not isinstance(account_name, str):
        raise LineItemError(f"account name is not text: {account_name!r}")
    account = (account_name or "").strip().lower()
    if account == ACCOUNT_INVENTORY_RAW:
        return raw_material_collection(module)
    if account == ACCOUNT_INVENTORY_ASSET:
        return CENTRAL_KITCHEN_FINISHED
    return None


# ── Line parsing ──────────────────────────────────────────────────────────────


def _number(value: Any, field: str, default: Optional[float] = None) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise LineItemError(f"missing {field}")
        return default
    if isinstance(value, bool):
        raise LineItemError(f"non-numeric {field}: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).replace(",", "").strip())
        except ValueError:
            raise LineItemError(f"non-numeric {field}: {value!r}") from None
    if math.isnan(number) or math.isinf(number):
        raise LineItemError(f"non-numeric {field}: {value!r}")
    return number


def parse_line(item: Any, index: int) -> ReceiptLine:
    if not isinstance(item, dict):
        raise LineItemError(f"line {index} is not an object")
    sku = str(item.get("sku") or "").strip()
    if not sku:
        raise LineItemError(f"line {index} has no SKU")
    quantity = _number(item.get("quantity"), "quantity")
    if quantity < 0:
        raise LineItemError(f"negative quantity {quantity:g} for {sku}")
    rate = _number(item.get("rate"), "rate", default=0.0)
    line_key = str(item.get("line_item_id") or f"line-{index}")
    return ReceiptLine(
        line_key=line_key,
        sku=sku,
        name=str(item.get("name") or item.get("description") or sku).strip(),
        quantity=quantity,
        rate=rate,
        unit=(str(item.get("unit")).strip() or None) if item.get("unit") else None,
        account_name=str(item.get("account_name") or ""),
    )


# ── Receiving ─────────────────────────────────────────────────────────────────


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


def receive_line(
    session: Session,
    collection: StockCollection,
    line: ReceiptLine,
    bill_id: str,
    policy: StockPolicy,
    now: Optional[datetime] = None,
) -> bool:
    """Add the line to stock. Returns True when a new item was created."""
    now = now or utcnow()
    model = collection.model
    code_col = getattr(model, collection.code_field)
    existing = session.exec(select(model).where(code_col == line.sku)).first()

    if existing is not None:
        existing.current_stock = (existing.current_stock or 0.0) + line.quantity
        existing.unit_price = line.rate
        existing.updated_by = PROCESSOR
        existing.updated_at = now
        existing.notes = _append_note(
            existing.notes,
            f"Received {line.quantity:g} units from bill {bill_id} on "
            f"{now:%Y-%m-%d} - Price updated to {line.rate:g}",
        )
        session.add(existing)
        return False

    item = model(
        **{
            collection.code_field: line.sku,
            collection.name_field: line.name,
        },
        category=policy.category,
        unit_of_measure=line.unit or policy.unit_of_measure,
        unit_price=line.rate,
        current_stock=line.quantity,
        minimum_stock=policy.minimum_stock,
        maximum_stock=policy.maximum_stock,
        reorder_point=policy.reorder_point,
        is_active=True,
        status=policy.status,
        notes=f"Created from bill {bill_id} - Initial stock: {line.quantity:g}",
        created_by=PROCESSOR,
        updated_by=PROCESSOR,
        created_at=now,
        updated_at=now,
    )
    session.add(item)
    return True


def already_received(session: Session, bill_id: str, line_key: str) -> bool:
    stmt = select(StockReceipt).where(
        StockReceipt.bill_id == bill_id,
        StockReceipt.line_key == line_key,
    )
    return session.exec(stmt).first() is not None


def record_receipt(
    session: Session,
    collection: StockCollection,
    line: ReceiptLine,
    bill_id: str,
) -> None:
    session.add(
        StockReceipt(
            bill_id=bill_id,
            line_key=line.line_key,
            module=collection.module.value,
            table_name=collection.table_name,
            item_code=line.sku,
            quantity=line.quantity,
            unit_price=line.rate,
        )
    )
