"""Tests for the command-line entry point."""
from sqlmodel import Session, select

from app.cli import analyze_bills, build_parser, main
from app.core.config import settings
from app.core.database import engine
from app.models.purchase_order import PurchaseOrder
from app.models.stock import Mall360RawMaterial
from app.sync.gateway import write_snapshot
from conftest import FakeBillSource, make_bill, make_line


class TestAnalyzeBills:
    def test_counts_and_total(self):
        bills = [
            make_bill("b1", vendor="Farm A", status="paid", total=100),
            make_bill("b2", vendor="Farm A", status="open", total="50.5"),
            make_bill("b3", vendor=None, status="open", total=None),
        ]
        summary = analyze_bills(bills)
        assert summary["total_bills"] == 3
        assert summary["by_vendor"] == {"Farm A": 2, "Unknown Vendor": 1}
        assert summary["by_status"] == {"open": 2, "paid": 1}
        assert summary["total_amount"] == 150.5

    def test_empty(self):
        assert analyze_bills([])["total_amount"] == 0


class TestCommands:
    def test_parser_requires_command(self):
        parser = build_parser()
        args = parser.parse_args(["process-many", "a", "b", "--from-snapshot"])
        assert args.bill_ids == ["a", "b"]
        assert args.from_snapshot is True

    def test_resolve(self, capsys):
        assert main(["resolve", "TLB 360 rna"]) == 0
        assert "mall-360" in capsys.readouterr().out

    def test_resolve_unmapped(self, capsys):
        assert main(["resolve", "Warehouse 9"]) == 1
        assert "not mapped" in capsys.readouterr().out

    def test_sync_from_snapshot(self, capsys):
        write_snapshot(
            settings.BILLS_SNAPSHOT_FILE,
            [make_bill("B-CLI-1", "BILL-CLI-1", location="360 Mall", line_items=[make_line("CUP-1", 50, 0.1)])],
        )

        assert main(["sync", "--from-snapshot"]) == 0
        out = capsys.readouterr().out
        assert "Synced 1 bills successfully and processed 1 bills" in out

        with Session(engine) as s:
            po = s.exec(select(PurchaseOrder).where(PurchaseOrder.zoho_bill_id == "B-CLI-1")).one()
            assert po.processing_status == "processed"
            cups = s.exec(select(Mall360RawMaterial).where(Mall360RawMaterial.material_code == "CUP-1")).one()
            assert cups.current_stock == 50

        # Processing the same bill again from the snapshot changes nothing
        assert main(["process", "B-CLI-1", "--from-snapshot"]) == 0
        assert "already processed" in capsys.readouterr().out

    def test_live_source_is_closed(self, monkeypatch, capsys):
        opened = []

        class ClosingSource(FakeBillSource):
            closed = False

            def close(self):
                self.closed = True

        def fake_source():
            source = ClosingSource([make_bill("B-CLI-2", "BILL-CLI-2", location="360 Mall")])
            opened.append(source)
            return source

        monkeypatch.setattr("app.cli.ZohoBillSource", fake_source)

        assert main(["fetch"]) == 0
        assert main(["sync", "--no-process"]) == 0
        assert main(["process", "B-CLI-2"]) == 0
        assert "Fetched 1 bills" in capsys.readouterr().out
        assert len(opened) == 3
        assert all(source.closed for source in opened)
