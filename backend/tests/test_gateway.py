"""Tests for the Zoho bills gateway and token provider (httpx.MockTransport)."""
import json

import httpx
import pytest

from app.sync.bill_source import SnapshotBillSource, ZohoBillSource
from app.sync.gateway import (
    ZohoAPIError,
    ZohoBillsClient,
    ZohoTokenProvider,
    read_snapshot,
    write_snapshot,
)
from conftest import make_bill


def _client(handler, tmp_path=None, **kwargs) -> ZohoBillsClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return ZohoBillsClient(
        http,
        organization_id="org-1",
        base_url="https://zoho.test",
        page_size=2,
        page_delay_seconds=0,
        snapshot_file=(tmp_path / "bills.json") if tmp_path else None,
        **kwargs,
    )


class TestPagination:
    def test_walks_all_pages_and_writes_snapshot(self, tmp_path):
        pages = {
            "1": {"code": 0, "bills": [make_bill("b1"), make_bill("b2")], "page_context": {"has_more_page": True}},
            "2": {"code": 0, "bills": [make_bill("b3")], "page_context": {"has_more_page": False}},
        }
        seen = []

        def handler(request: httpx.Request):
            seen.append(dict(request.url.params))
            assert request.url.path == "/inventory/v1/bills"
            assert request.headers["Authorization"] == "Zoho-oauthtoken tok"
            return httpx.Response(200, json=pages[request.url.params["page"]])

        client = _client(handler, tmp_path)
        bills = client.fetch_all_bills("tok")

        assert [b["bill_id"] for b in bills] == ["b1", "b2", "b3"]
        assert [p["page"] for p in seen] == ["1", "2"]
        assert all(p["organization_id"] == "org-1" and p["per_page"] == "2" for p in seen)
        assert [b["bill_id"] for b in read_snapshot(tmp_path / "bills.json")] == ["b1", "b2", "b3"]

    def test_single_page_without_page_context(self):
        client = _client(lambda r: httpx.Response(200, json={"code": 0, "bills": []}))
        assert client.fetch_all_bills("tok") == []

    def test_failing_page_aborts_whole_fetch(self, tmp_path):
        def handler(request):
            if request.url.params["page"] == "2":
                return httpx.Response(500, text="boom")
            return httpx.Response(200, json={"code": 0, "bills": [make_bill("b1")], "page_context": {"has_more_page": True}})

        client = _client(handler, tmp_path)
        with pytest.raises(ZohoAPIError) as exc:
            client.fetch_all_bills("tok")
        assert exc.value.status_code == 500
        assert not (tmp_path / "bills.json").exists()


class TestSingleBill:
    def test_fetch_by_id(self):
        def handler(request):
            assert request.url.path == "/inventory/v1/bills/b9"
            return httpx.Response(200, json={"code": 0, "bill": make_bill("b9")})

        assert _client(handler).fetch_bill_by_id("tok", "b9")["bill_id"] == "b9"

    def test_missing_bill_object(self):
        client = _client(lambda r: httpx.Response(200, json={"code": 0, "message": "ok"}))
        with pytest.raises(ZohoAPIError):
            client.fetch_bill_by_id("tok", "b9")


class TestErrors:
    def test_non_zero_code(self):
        client = _client(
            lambda r: httpx.Response(200, json={"code": 57, "message": "You are not authorized"})
        )
        with pytest.raises(ZohoAPIError, match="57"):
            client.fetch_bill_page("tok", 1)

    def test_http_error_status(self):
        client = _client(lambda r: httpx.Response(401, json={"code": 14, "message": "Invalid token"}))
        with pytest.raises(ZohoAPIError) as exc:
            client.fetch_bill_page("tok", 1)
        assert exc.value.status_code == 401

    def test_invalid_json(self):
        client = _client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(ZohoAPIError, match="invalid JSON"):
            client.fetch_bill_page("tok", 1)

    def test_timeout_wrapped(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ZohoAPIError, match="timeout"):
            _client(handler).fetch_bill_page("tok", 1)

    def test_network_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ZohoAPIError, match="network error"):
            _client(handler).fetch_bill_page("tok", 1)


class TestTokenProvider:
    def _provider(self, handler, **kwargs):
        http = httpx.Client(transport=httpx.MockTransport(handler))
        defaults = dict(
            accounts_url="https://accounts.test",
            client_id="cid",
            client_secret="secret",
            refresh_token="refresh",
            redirect_uri="",
            static_token="",
        )
        defaults.update(kwargs)
        return ZohoTokenProvider(http, **defaults)

    def test_refresh_grant_and_cache(self):
        calls = []

        def handler(request):
            calls.append(request)
            assert request.url.path == "/oauth/v2/token"
            form = dict(httpx.QueryParams(request.content.decode()))
            assert form["grant_type"] == "refresh_token"
            assert form["refresh_token"] == "refresh"
            return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})

        provider = self._provider(handler)
        assert provider.get_access_token() == "fresh"
        assert provider.get_access_token() == "fresh"
        assert len(calls) == 1

    def test_static_token_skips_network(self):
        def handler(request):
            raise AssertionError("token endpoint must not be called")

        assert self._provider(handler, static_token="static").get_access_token() == "static"

    def test_missing_credentials(self):
        provider = self._provider(lambda r: httpx.Response(200, json={}), client_id="")
        with pytest.raises(ZohoAPIError, match="required"):
            provider.get_access_token()

    def test_no_access_token_in_response(self):
        provider = self._provider(lambda r: httpx.Response(200, json={"error": "invalid_code"}))
        with pytest.raises(ZohoAPIError, match="invalid_code"):
            provider.get_access_token()


class TestBillSources:
    def test_zoho_source_shares_one_client(self, tmp_path):
        def handler(request):
            if request.url.path == "/oauth/v2/token":
                return httpx.Response(200, json={"access_token": "t1", "expires_in": 3600})
            assert request.headers["Authorization"].endswith("t1")
            return httpx.Response(200, json={"code": 0, "bill": make_bill("b5")})

        source = ZohoBillSource(http=httpx.Client(transport=httpx.MockTransport(handler)))
        source.tokens.static_token = ""
        source.tokens.client_id, source.tokens.client_secret, source.tokens.refresh_token = "c", "s", "r"
        assert source.fetch_bill("b5")["bill_id"] == "b5"
        source.close()

    def test_snapshot_source(self, tmp_path):
        path = write_snapshot(tmp_path / "snap.json", [make_bill("b1"), make_bill("b2")])
        payload = json.loads(path.read_text())
        assert payload["code"] == 0 and "fetched_at" in payload

        source = SnapshotBillSource(path)
        assert len(source.fetch_all_bills()) == 2
        assert source.fetch_bill("b2")["bill_id"] == "b2"
        with pytest.raises(ValueError):
            source.fetch_bill("missing")
