"""
Report Aggregator tests.

The fold functions are exercised directly with hand-built scan records;
the service wrappers and HTTP exports run on top of them.
"""

import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from zonecount.records import ScanRecord, UserRecord, ZoneRecord
from zonecount.services import reporting_service, scan_service, zone_service
from zonecount.services.permission_service import PermissionDeniedError, Principal
from zonecount.services.reporting_service import (
    ReportError,
    fold_counts_report,
    fold_dashboard_stats,
    fold_sku_summary,
    fold_zone_summary,
)


ZONES = {
    1: ZoneRecord(id=1, company_id=1, name="C01-E01", description="Street 01, rack 01"),
    2: ZoneRecord(id=2, company_id=1, name="C01-E02", description="Street 01, rack 02"),
    3: ZoneRecord(id=3, company_id=1, name="C02-E01", description="Street 02, rack 01"),
}
USERS = {
    10: UserRecord(id=10, company_id=1, name="Ana", email="ana@acme.test", role="user", password_hash="x"),
    11: UserRecord(id=11, company_id=1, name="Ben", email="ben@acme.test", role="user", password_hash="x"),
}


def scan(code, zone_id, count_number, user_id=10, sku=None, description="Article", scanned_at=None, is_serial=False):
    return ScanRecord(
        id=None,
        company_id=1,
        code=code,
        sku=sku or f"SKU-{code}",
        description=description,
        zone_id=zone_id,
        zone_name=ZONES[zone_id].name if zone_id in ZONES else "gone",
        user_id=user_id,
        count_number=count_number,
        scanned_at=scanned_at or datetime(2026, 10, 19, 8, 0, 0),
        is_serial=is_serial,
    )


class TestCountsReport:

    @pytest.mark.parametrize(
        "count1_zone,count2_zone,expected",
        [
            (None, None, False),
            (1, None, False),
            (None, 1, False),
            (1, 1, False),
            (1, 2, True),
        ],
    )
    def test_needs_third_count(self, count1_zone, count2_zone, expected):
        scans = []
        if count1_zone:
            scans.append(scan("111", count1_zone, 1))
        if count2_zone:
            scans.append(scan("111", count2_zone, 2))
        scans.append(scan("111", 3, 3))

        (row,) = fold_counts_report(scans, ZONES, USERS)

        assert row["needs_third_count"] is expected

    def test_row_shape(self):
        (row,) = fold_counts_report([
            scan("111", 1, 1, user_id=10),
            scan("111", 2, 2, user_id=11),
        ], ZONES, USERS)

        assert row == {
            "code": "111",
            "count1_user": "Ana", "count1_zone": "C01-E01",
            "count2_user": "Ben", "count2_zone": "C01-E02",
            "count3_user": None, "count3_zone": None,
            "needs_third_count": True,
        }

    def test_last_scan_of_a_count_wins(self):
        (row,) = fold_counts_report([
            scan("111", 1, 1, user_id=10),
            scan("111", 2, 1, user_id=11),
        ], ZONES, USERS)

        assert (row["count1_user"], row["count1_zone"]) == ("Ben", "C01-E02")

    def test_unknown_user_and_deleted_zone(self):
        (row,) = fold_counts_report([scan("111", 42, 1, user_id=999)], ZONES, USERS)

        assert row["count1_user"] == "Unknown user"
        assert row["count1_zone"] == "Unknown zone"

    def test_two_deleted_zones_are_different_zones(self):
        (row,) = fold_counts_report([scan("111", 41, 1), scan("111", 42, 2)], ZONES, USERS)

        assert row["count1_zone"] == row["count2_zone"] == "Unknown zone"
        assert row["needs_third_count"] is True

    def test_same_deleted_zone_is_not_a_mismatch(self):
        (row,) = fold_counts_report([scan("111", 42, 1), scan("111", 42, 2)], ZONES, USERS)
        assert row["needs_third_count"] is False

    def test_sorted_by_code(self):
        rows = fold_counts_report([scan("333", 1, 1), scan("111", 1, 1), scan("222", 1, 1)], ZONES, USERS)
        assert [r["code"] for r in rows] == ["111", "222", "333"]


class TestSkuSummary:

    def test_tallies_and_total(self):
        rows = fold_sku_summary([
            scan("111", 1, 1, sku="SKU-A", description="Pen"),
            scan("112", 1, 1, sku="SKU-A", description="Pen"),
            scan("111", 2, 2, sku="SKU-A", description="Pen"),
            scan("111", 3, 3, sku="SKU-A", description="Pen"),
            scan("222", 1, 2, sku="SKU-B", description="Pad"),
        ])

        assert rows == [
            {"sku": "SKU-A", "description": "Pen", "count1": 2, "count2": 1, "count3": 1, "total": 4},
            {"sku": "SKU-B", "description": "Pad", "count1": 0, "count2": 1, "count3": 0, "total": 1},
        ]
        for row in rows:
            assert row["total"] == row["count1"] + row["count2"] + row["count3"]

    def test_unknown_products_skipped(self):
        rows = fold_sku_summary([scan("000", 1, 1, sku="N/A", description="Product not found")])
        assert rows == []


class TestZoneSummary:

    def test_grouped_by_zone(self):
        rows = fold_zone_summary([
            scan("111", 2, 1),
            scan("112", 1, 1),
            scan("113", 1, 2),
            scan("114", 42, 3),
        ], ZONES)

        assert [r["zone"] for r in rows] == ["C01-E01", "C01-E02", "Unknown zone"]
        assert rows[0] == {"zone": "C01-E01", "zone_id": 1, "count1": 1, "count2": 1, "count3": 0, "total": 2}
        assert rows[2]["count3"] == 1

    def test_deleted_zones_stay_separate(self):
        rows = fold_zone_summary([
            scan("111", 41, 1),
            scan("112", 42, 1),
            scan("113", 42, 2),
        ], ZONES)

        assert [(r["zone"], r["zone_id"]) for r in rows] == [("Unknown zone", 41), ("Unknown zone", 42)]
        assert [r["total"] for r in rows] == [1, 2]


class TestDashboard:

    def test_stats(self):
        now = datetime(2026, 10, 19, 15, 0, 0)
        stats = fold_dashboard_stats([
            scan("111", 1, 1, scanned_at=datetime(2026, 10, 19, 8, 0)),
            scan("SN-1", 1, 2, scanned_at=datetime(2026, 10, 19, 9, 0), is_serial=True),
            scan("112", 2, 1, scanned_at=datetime(2026, 10, 18, 23, 59)),
        ], ZONES, now=now)

        assert stats["ean_scans_today"] == 1
        assert stats["serial_scans_today"] == 1
        assert stats["active_zones"] == 3
        assert stats["total_scans"] == 3
        assert {"name": "C01-E01", "zone_id": 1, "count1": 1, "count2": 1, "count3": 0} in stats["chart"]


class TestServiceAndExport:

    @pytest.fixture
    def loaded(self, repo, mem_admin, mem_user, mem_zones):
        repo.upsert_products(mem_admin.company_id, [
            {"code": "111", "sku": "SKU-A", "description": "Pen"},
        ])
        scan_service.submit_batch(mem_user, [
            {"code": "111", "zone_id": mem_zones[0].id, "count_number": 1, "scanned_at": "2026-10-19T08:00:00Z"},
            {"code": "111", "zone_id": mem_zones[1].id, "count_number": 2, "scanned_at": "2026-10-19T09:00:00Z"},
            {"code": "999", "zone_id": mem_zones[1].id, "count_number": 1, "scanned_at": "2026-10-19T09:00:00Z"},
        ], repo=repo)
        return repo

    def test_counts_report_uses_user_names(self, loaded, mem_admin):
        rows = reporting_service.counts_report(mem_admin, repo=loaded)
        assert rows[0]["code"] == "111"
        assert rows[0]["count1_user"] == "Ulrich User"
        assert rows[0]["needs_third_count"] is True

    def test_zone_summary_after_zone_deleted(self, loaded, mem_admin, mem_zones):
        zone_service.delete_zone(mem_admin, mem_zones[1].id, repo=loaded)
        rows = reporting_service.zone_summary(mem_admin, repo=loaded)
        assert [r["zone"] for r in rows] == ["C01-E01", "Unknown zone"]

    def test_later_batch_wins_for_the_same_code_and_count(self, repo, mem_admin, mem_user, mem_zones):
        scan_service.submit_batch(mem_user, [
            {"code": "111", "zone_id": mem_zones[0].id, "count_number": 1, "scanned_at": "2026-10-19T08:00:00Z"},
        ], repo=repo)
        scan_service.submit_batch(mem_admin, [
            {"code": "111", "zone_id": mem_zones[1].id, "count_number": 1, "scanned_at": "2026-10-19T07:00:00Z"},
        ], repo=repo)

        (row,) = reporting_service.counts_report(mem_admin, repo=repo)

        assert row["count1_zone"] == mem_zones[1].name
        assert row["count1_user"] == "Alice Admin"

    def test_csv_export(self, loaded, mem_admin):
        body, mimetype, filename = reporting_service.export_report(mem_admin, "sku-summary", "csv", repo=loaded)

        lines = body.decode("utf-8").splitlines()
        assert mimetype == "text/csv"
        assert filename == "sku-summary.csv"
        assert lines[0] == "sku,description,count1,count2,count3,total"
        assert lines[1] == "SKU-A,Pen,1,1,0,2"
        assert len(lines) == 2

    def test_xlsx_export(self, loaded, mem_admin):
        body, mimetype, filename = reporting_service.export_report(mem_admin, "zone-summary", "xlsx", repo=loaded)

        wb = load_workbook(io.BytesIO(body))
        sheet = wb["Data"]
        rows = list(sheet.values)
        assert filename == "zone-summary.xlsx"
        assert rows[0] == ("zone", "count1", "count2", "count3", "total")
        assert rows[1] == ("C01-E01", 1, 0, 0, 1)

    def test_unknown_report(self, loaded, mem_admin):
        with pytest.raises(ReportError):
            reporting_service.export_report(mem_admin, "payroll", "csv", repo=loaded)

    def test_unknown_format(self, loaded, mem_admin):
        with pytest.raises(ReportError):
            reporting_service.export_report(mem_admin, "counts", "pdf", repo=loaded)

    def test_requires_capability(self, loaded):
        with pytest.raises(PermissionDeniedError):
            reporting_service.counts_report(Principal(user_id=1, company_id=1, role="guest"), repo=loaded)


class TestReportRoutes:

    def test_counts_route(self, client, admin_a_headers):
        zone_id = client.post("/api/zones", headers=admin_a_headers, json={
            "name": "C01-E01", "description": "Street 01, rack 01",
        }).json["zone"]["id"]
        client.post("/api/scans/batch", headers=admin_a_headers, json={"scans": [
            {"code": "111", "zone_id": zone_id, "count_number": 1, "scanned_at": "2026-10-19T08:00:00Z"},
        ]})

        resp = client.get("/api/reports/counts", headers=admin_a_headers)

        assert resp.status_code == 200
        assert resp.json["rows"][0]["count1_user"] == "Alice Admin"
        assert resp.json["needs_third_count"] == 0

    def test_export_route(self, client, admin_a_headers):
        resp = client.get("/api/reports/counts/export?format=csv", headers=admin_a_headers)

        assert resp.status_code == 200
        assert resp.headers["Content-Disposition"] == "attachment; filename=counts.csv"
        assert resp.data.decode("utf-8").startswith("code,count1_user,count1_zone")

    def test_export_bad_format(self, client, admin_a_headers):
        resp = client.get("/api/reports/counts/export?format=pdf", headers=admin_a_headers)
        assert resp.status_code == 400

    def test_dashboard_route(self, client, user_a_headers):
        resp = client.get("/api/reports/dashboard", headers=user_a_headers)
        assert resp.status_code == 200
        assert resp.json["total_scans"] == 0
