from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Protocol

import httpx

from app.core.config import settings
from app.sync.gateway import ZohoBillsClient, ZohoTokenProvider, read_snapshot


class BillSource(Protocol):
    def fetch_all_bills(self) -> list[dict]: ...

    def fetch_bill(self, bill_id: str) -> dict: ...

    def close(self) -> None: ...


class ZohoBillSource:
    """Live Zoho source: token refresh + bills client sharing one HTTP client."""

    def __init__(self, http: httpx.Client | None = None) -> None:
        self.http = http or httpx.Client(timeout=settings.ZOHO_TIMEOUT_SECONDS)
        self.tokens = ZohoTokenProvider(self.http)
        self.client = ZohoBillsClient(self.http)

    def fetch_all_bills(self) -> list[dict]:
        return self.client.fetch_all_bills(self.tokens.get_access_token())

    def fetch_bill(self, bill_id: str) -> dict:
        return self.client.fetch_bill_by_id(self.tokens.get_access_token(), bill_id)

    def close(self) -> None:
        self.http.close()


class SnapshotBillSource:
    """Replays a raw bills snapshot instead of calling Zoho."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._bills = read_snapshot(self.path)
        self._by_id = {str(b.get("bill_id")): b for b in self._bills if isinstance(b, dict) and b.get("bill_id")}

    def fetch_all_bills(self) -> list[dict]:
        return list(self._bills)

    def fetch_bill(self, bill_id: str) -> dict:
        try:
            return self._by_id[str(bill_id)]
        except KeyError:
            raise ValueError(f"Bill {bill_id} not found in snapshot {self.path}") from None

    def close(self) -> None:
        pass


@lru_cache(maxsize=1)
def get_bill_source() -> BillSource:
    return ZohoBillSource()
