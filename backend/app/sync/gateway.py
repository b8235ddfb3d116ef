"""
Zoho Inventory bills gateway.

  GET /inventory/v1/bills?organization_id=&page=&per_page=   (list, paginated)
  GET /inventory/v1/bills/{bill_id}?organization_id=         (single bill)

Every response is a JSON envelope with a numeric "code" (0 = success) and a
"message". A non-2xx status, a network error/timeout or a non-zero code
raises ZohoAPIError. There is no partial success across pages: one failing
page aborts the whole fetch.

Access tokens come from the OAuth refresh-token grant (ZohoTokenProvider).
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import httpx
from loguru import logger

from app.core.config import settings
from app.core.timeutils import utcnow

BILLS_PATH = "/inventory/v1/bills"
TOKEN_PATH = "/oauth/v2/token"

# Refresh this long before Zoho says the token expires
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)


class ZohoAPIError(RuntimeError):
    """Raised for any failed call to Zoho (HTTP, network or application level)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class BillPage:
    bills: list[dict]
    has_more: bool
    page: int


def _decode(response: httpx.Response, what: str) -> dict:
    if not response.is_success:
        raise ZohoAPIError(
            f"Zoho API error {response.status_code} on {what}: {response.text[:500]}",
            status_code=response.status_code,
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise ZohoAPIError(f"Zoho API returned invalid JSON on {what}") from exc
    if not isinstance(payload, dict):
        raise ZohoAPIError(f"Zoho API returned unexpected payload on {what}")
    code = payload.get("code", 0)
    if code not in (0, "0"):
        raise ZohoAPIError(
            f"Zoho API error code {code} on {what}: {payload.get('message', '')}"
        )
    return payload


# ── Token ─────────────────────────────────────────────────────────────────────


class ZohoTokenProvider:
    """Obtains and caches an access token via the refresh-token grant."""

    def __init__(
        self,
        http: httpx.Client,
        accounts_url: str = settings.ZOHO_ACCOUNTS_URL,
        client_id: str = settings.ZOHO_CLIENT_ID,
        client_secret: str = settings.ZOHO_CLIENT_SECRET,
        refresh_token: str = settings.ZOHO_REFRESH_TOKEN,
        redirect_uri: str = settings.ZOHO_REDIRECT_URI,
        static_token: str = settings.ZOHO_ACCESS_TOKEN,
    ) -> None:
        self.http = http
        self.accounts_url = accounts_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.redirect_uri = redirect_uri
        self.static_token = static_token
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    def get_access_token(self) -> str:
        if self.static_token:
            return self.static_token
        if self._token and self._expires_at and utcnow() < self._expires_at:
            return self._token
        if not (self.client_id and self.client_secret and self.refresh_token):
            raise ZohoAPIError(
                "ZOHO_CLIENT_ID, ZOHO_CLIENT_SECRET and ZOHO_REFRESH_TOKEN are required"
            )

        data = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
        }
        if self.redirect_uri:
            data["redirect_uri"] = self.redirect_uri
        try:
            response = self.http.post(f"{self.accounts_url}{TOKEN_PATH}", data=data)
        except httpx.HTTPError as exc:
            raise ZohoAPIError(f"Zoho token network error: {exc}") from exc

        payload = _decode(response, "token refresh")
        token = payload.get("access_token")
        if not token:
            raise ZohoAPIError(
                f"Zoho token refresh returned no access_token: {payload.get('error', payload)}"
            )
        expires_in = int(payload.get("expires_in") or 3600)
        self._token = token
        self._expires_at = utcnow() + timedelta(seconds=expires_in) - TOKEN_EXPIRY_MARGIN
        logger.info(f"Zoho access token obtained (expires in {expires_in}s)")
        return token


# ── Bills ─────────────────────────────────────────────────────────────────────


@dataclass
class ZohoBillsClient:
    http: httpx.Client
    organization_id: str = settings.ZOHO_ORGANIZATION_ID
    base_url: str = settings.ZOHO_API_BASE_URL
    auth_scheme: str = settings.ZOHO_AUTH_SCHEME
    page_size: int = settings.ZOHO_PAGE_SIZE
    page_delay_seconds: float = settings.ZOHO_PAGE_DELAY_SECONDS
    snapshot_file: Optional[Path] = field(default_factory=lambda: settings.BILLS_SNAPSHOT_FILE)

    def _get(self, token: str, path: str, params: dict[str, Any], what: str) -> dict:
        headers = {
            "Authorization": f"{self.auth_scheme} {token}",
            "Content-Type": "application/json",
        }
        url = f"{self.base_url.rstrip('/')}{path}"
        try:
            response = self.http.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise ZohoAPIError(f"Zoho API timeout on {what}") from exc
        except httpx.HTTPError as exc:
            raise ZohoAPIError(f"Zoho API network error on {what}: {exc}") from exc
        return _decode(response, what)

    def fetch_bill_page(
        self,
        token: str,
        page: int,
        page_size: Optional[int] = None,
        organization_id: Optional[str] = None,
    ) -> BillPage:
        params = {
            "organization_id": organization_id or self.organization_id,
            "page": page,
            "per_page": page_size or self.page_size,
        }
        payload = self._get(token, BILLS_PATH, params, f"bills page {page}")
        bills = payload.get("bills")
        if not isinstance(bills, list):
            raise ZohoAPIError(f"Invalid response for bills page {page}: no bills array")
        page_context = payload.get("page_context") or {}
        return BillPage(
            bills=bills,
            has_more=bool(page_context.get("has_more_page")),
            page=page,
        )

    def fetch_bill_by_id(
        self, token: str, bill_id: str, organization_id: Optional[str] = None
    ) -> dict:
        params = {"organization_id": organization_id or self.organization_id}
        payload = self._get(token, f"{BILLS_PATH}/{bill_id}", params, f"bill {bill_id}")
        bill = payload.get("bill")
        if not isinstance(bill, dict):
            raise ZohoAPIError(f"Invalid response for bill {bill_id}: no bill object")
        return bill

    def fetch_all_bills(self, token: str, organization_id: Optional[str] = None) -> list[dict]:
        """Walk every page, then write the aggregate as a raw JSON snapshot."""
        all_bills: list[dict] = []
        page = 1
        while True:
            result = self.fetch_bill_page(token, page, organization_id=organization_id)
            all_bills.extend(result.bills)
            logger.debug(
                f"Bills page {page}: {len(result.bills)} bills (total {len(all_bills)})"
            )
            if not result.has_more:
                break
            page += 1
            # Zoho rate-limits aggressive pagination
            if self.page_delay_seconds > 0:
                time.sleep(self.page_delay_seconds)

        logger.info(f"Fetched {len(all_bills)} bills from Zoho across {page} page(s)")
        if self.snapshot_file is not None:
            write_snapshot(self.snapshot_file, all_bills)
        return all_bills


def write_snapshot(path: Path, bills: list[dict]) -> Path:
    """Persist the raw fetch result for audit/replay."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    envelope = {
        "code": 0,
        "message": "success",
        "fetched_at": utcnow().isoformat(),
        "bills": bills,
    }
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Bills snapshot saved to {path}")
    return path


def read_snapshot(path: Path) -> list[dict]:
    """Load bills from a snapshot written by write_snapshot."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return list(payload.get("bills") or [])
