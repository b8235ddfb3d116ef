"""
Shared pytest fixtures.

Configuration is read from the environment when app.core.config is first
imported, so the temp paths below are set before any app module loads.
"""
import os
import sys
import tempfile

# Ensure app package is importable when running pytest from project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

_tmp_root = tempfile.mkdtemp(prefix="localbeet-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_root, 'test.db')}"
os.environ["DATA_DIR"] = os.path.join(_tmp_root, "data")
os.environ["LOG_DIR"] = os.path.join(_tmp_root, "logs")
os.environ["BILLS_SNAPSHOT_FILE"] = os.path.join(_tmp_root, "data", "zoho_bills_raw.json")
os.environ["ZOHO_PAGE_DELAY_SECONDS"] = "0"
os.environ["ZOHO_ACCESS_TOKEN"] = ""
os.environ["ZOHO_ORGANIZATION_ID"] = "org-test"
os.environ["LOCATION_MAPPING_FILE"] = ""
os.environ["LOCATION_EXACT_ONLY"] = "false"

import pytest  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401 – registers every table on SQLModel.metadata
from app.sync.gateway import ZohoAPIError  # noqa: E402
from app.sync.locations import LocationResolver  # noqa: E402
from app.sync.stock import StockPolicy  # noqa: E402


class FakeBillSource:
    """In-memory bill source; records every single-bill fetch."""

    def __init__(self, bills=(), failing_ids=(), fail_list=False):
        self.bills = {b["bill_id"]: b for b in bills}
        self.failing_ids = set(failing_ids)
        self.fail_list = fail_list
        self.fetched: list[str] = []

    def fetch_all_bills(self) -> list[dict]:
        if self.fail_list:
            raise ZohoAPIError("Zoho API error 503 on bills page 1", status_code=503)
        return list(self.bills.values())

    def fetch_bill(self, bill_id: str) -> dict:
        self.fetched.append(bill_id)
        if bill_id in self.failing_ids:
            raise ZohoAPIError(f"Zoho API timeout on bill {bill_id}")
        if bill_id not in self.bills:
            raise ZohoAPIError(f"Zoho API error 404 on bill {bill_id}", status_code=404)
        return self.bills[bill_id]


def _total(quantity, rate) -> float:
    try:
        return float(quantity) * float(rate)
    except (TypeError, ValueError):
        return 0.0


def make_line(
    sku="TOM-001",
    quantity=10,
    rate=1.5,
    account_name="Inventory Raw",
    line_item_id=None,
    name=None,
    **extra,
) -> dict:
    line = {
        "line_item_id": line_item_id or f"li-{sku}",
        "item_id": f"item-{sku}",
        "sku": sku,
        "name": name or f"Item {sku}",
        "quantity": quantity,
        "rate": rate,
        "item_total": _total(quantity, rate),
        "unit": "kg",
        "account_name": account_name,
    }
    line.update(extra)
    return line


def make_bill(
    bill_id="B-1001",
    bill_number="BILL-001",
    location="TLB City",
    line_items=None,
    status="open",
    vendor="Fresh Farms Co",
    **extra,
) -> dict:
    items = [make_line()] if line_items is None else line_items
    bill = {
        "bill_id": bill_id,
        "bill_number": bill_number,
        "vendor_id": "V-1",
        "vendor_name": vendor,
        "status": status,
        "date": "2024-03-01",
        "due_date": "2024-03-31",
        "total": sum(i.get("item_total") or 0 for i in items if isinstance(i, dict)),
        "location_name": location,
        "line_items": items,
    }
    bill.update(extra)
    return bill


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def resolver():
    return LocationResolver()


@pytest.fixture
def policy():
    return StockPolicy()
