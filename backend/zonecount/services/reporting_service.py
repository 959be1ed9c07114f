# Overview: Count reconciliation, SKU and zone summaries, dashboard stats and exports.

"""
Report Aggregator

All reports are folds over the company's scans in insertion order. The
fold functions (fold_*) are pure; the public functions load the data
for a principal and call them.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime

from openpyxl import Workbook

from ..records import ScanRecord, UserRecord, ZoneRecord
from ..repositories import get_repository
from zonecount.time_utils import start_of_utc_day
from .permission_service import Principal, authorize
from .scan_service import FALLBACK_SKU, UNKNOWN_USER, display_zone_name


COUNT_NUMBERS = (1, 2, 3)

COUNTS_REPORT_COLUMNS = (
    "code",
    "count1_user", "count1_zone",
    "count2_user", "count2_zone",
    "count3_user", "count3_zone",
    "needs_third_count",
)
SKU_SUMMARY_COLUMNS = ("sku", "description", "count1", "count2", "count3", "total")
ZONE_SUMMARY_COLUMNS = ("zone", "count1", "count2", "count3", "total")

EXPORT_FORMATS = ("csv", "xlsx")


class ReportError(Exception):
    """Raised when a report or export format is unknown."""
    pass


def _tally() -> dict:
    return {"count1": 0, "count2": 0, "count3": 0, "total": 0}


def _add_to_tally(tally: dict, count_number: int) -> None:
    if count_number in COUNT_NUMBERS:
        tally[f"count{count_number}"] += 1
        tally["total"] += 1


def fold_counts_report(
    scans: list[ScanRecord],
    zones_by_id: dict[int, ZoneRecord],
    users_by_id: dict[int, UserRecord],
) -> list[dict]:
    """
    One row per code with who scanned it where in each count pass.

    When a code was scanned several times in the same pass, the last scan
    in submission order wins. A third count is needed when count 1 and
    count 2 were done in different zones. Zones are compared by id, so
    two deleted zones still count as different even though both display
    as "Unknown zone".
    """
    rows: dict[str, dict] = {}
    zone_ids: dict[str, dict[int, int]] = {}
    for scan in scans:
        row = rows.get(scan.code)
        if row is None:
            row = rows[scan.code] = {"code": scan.code}
            zone_ids[scan.code] = {}
            for n in COUNT_NUMBERS:
                row[f"count{n}_user"] = None
                row[f"count{n}_zone"] = None
        if scan.count_number not in COUNT_NUMBERS:
            continue
        user = users_by_id.get(scan.user_id)
        row[f"count{scan.count_number}_user"] = user.name if user else UNKNOWN_USER
        row[f"count{scan.count_number}_zone"] = display_zone_name(scan, zones_by_id)
        zone_ids[scan.code][scan.count_number] = scan.zone_id

    for code, row in rows.items():
        z1, z2 = zone_ids[code].get(1), zone_ids[code].get(2)
        row["needs_third_count"] = z1 is not None and z2 is not None and z1 != z2

    return sorted(rows.values(), key=lambda r: r["code"])


def fold_sku_summary(scans: list[ScanRecord]) -> list[dict]:
    """Tallies per SKU. Scans without a product ("N/A") are left out."""
    groups: dict[str, dict] = {}
    for scan in scans:
        if scan.sku == FALLBACK_SKU:
            continue
        group = groups.get(scan.sku)
        if group is None:
            group = groups[scan.sku] = {"sku": scan.sku, "description": scan.description, **_tally()}
        _add_to_tally(group, scan.count_number)
    return sorted(groups.values(), key=lambda g: g["sku"])


def fold_zone_summary(scans: list[ScanRecord], zones_by_id: dict[int, ZoneRecord]) -> list[dict]:
    """
    Tallies per zone. Scans are grouped by zone id; the display name is
    only the label, so deleted zones stay separate rows.
    """
    groups: dict[int, dict] = {}
    for scan in scans:
        group = groups.get(scan.zone_id)
        if group is None:
            group = groups[scan.zone_id] = {
                "zone": display_zone_name(scan, zones_by_id),
                "zone_id": scan.zone_id,
                **_tally(),
            }
        _add_to_tally(group, scan.count_number)
    return sorted(groups.values(), key=lambda g: (g["zone"], g["zone_id"]))


def fold_dashboard_stats(
    scans: list[ScanRecord],
    zones_by_id: dict[int, ZoneRecord],
    now: datetime | None = None,
) -> dict:
    today = start_of_utc_day(now)
    todays = [s for s in scans if start_of_utc_day(s.scanned_at) == today]

    chart: dict[int, dict] = {}
    for scan in scans:
        entry = chart.get(scan.zone_id)
        if entry is None:
            entry = chart[scan.zone_id] = {
                "name": display_zone_name(scan, zones_by_id),
                "zone_id": scan.zone_id,
                "count1": 0, "count2": 0, "count3": 0,
            }
        if scan.count_number in COUNT_NUMBERS:
            entry[f"count{scan.count_number}"] += 1

    return {
        "ean_scans_today": sum(1 for s in todays if not s.is_serial),
        "serial_scans_today": sum(1 for s in todays if s.is_serial),
        "active_zones": len(zones_by_id),
        "total_scans": len(scans),
        "chart": list(chart.values()),
    }


def _load(principal: Principal, repo):
    repo = repo or get_repository()
    authorize(principal, "VIEW_REPORTS")
    scans = repo.list_scans(principal.company_id)
    zones = {z.id: z for z in repo.list_zones(principal.company_id)}
    return repo, scans, zones


def counts_report(principal: Principal, repo=None) -> list[dict]:
    repo, scans, zones = _load(principal, repo)
    users = {u.id: u for u in repo.list_users(principal.company_id)}
    return fold_counts_report(scans, zones, users)


def sku_summary(principal: Principal, repo=None) -> list[dict]:
    _, scans, _ = _load(principal, repo)
    return fold_sku_summary(scans)


def zone_summary(principal: Principal, repo=None) -> list[dict]:
    _, scans, zones = _load(principal, repo)
    return fold_zone_summary(scans, zones)


def dashboard_stats(principal: Principal, repo=None, now: datetime | None = None) -> dict:
    _, scans, zones = _load(principal, repo)
    return fold_dashboard_stats(scans, zones, now=now)


REPORTS = {
    "counts": (counts_report, COUNTS_REPORT_COLUMNS),
    "sku-summary": (sku_summary, SKU_SUMMARY_COLUMNS),
    "zone-summary": (zone_summary, ZONE_SUMMARY_COLUMNS),
}


def rows_to_csv(rows: list[dict], columns) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(columns), extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def rows_to_xlsx(rows: list[dict], columns) -> bytes:
    wb = Workbook()
    sheet = wb.active
    sheet.title = "Data"
    sheet.append(list(columns))
    for row in rows:
        sheet.append([row.get(c) for c in columns])
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_report(principal: Principal, name: str, fmt: str = "csv", repo=None) -> tuple[bytes, str, str]:
    """
    Render a report for download.

    Returns (payload, mimetype, filename).
    """
    if name not in REPORTS:
        raise ReportError(f"Unknown report: {name}")
    if fmt not in EXPORT_FORMATS:
        raise ReportError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")

    build, columns = REPORTS[name]
    rows = build(principal, repo=repo)

    if fmt == "csv":
        return rows_to_csv(rows, columns).encode("utf-8"), "text/csv", f"{name}.csv"
    return (
        rows_to_xlsx(rows, columns),
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        f"{name}.xlsx",
    )
