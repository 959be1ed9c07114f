# Overview: Product master lookup, CSV/XLSX import and CSV export.

from __future__ import annotations

import csv
import io
import zipfile

from ..records import ProductRecord
from ..repositories import get_repository
from ..validation import ValidationError
from .permission_service import Principal, authorize
from .tenant_service import TenantAccessError


PRODUCT_COLUMNS = ("code", "sku", "description")


def _cell(value) -> str:
    """Spreadsheet cells may be numbers; barcodes are always strings."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def normalize_product_rows(rows: list[dict], header: list[str] | None = None) -> list[dict]:
    """
    Validate raw rows keyed by header name.

    Header names are matched case-insensitively and in any order; extra
    columns are ignored. Any bad row rejects the whole file. When a code
    repeats, the last row wins.
    """
    if header is not None:
        present = {(h or "").strip().lower() for h in header}
        missing = [c for c in PRODUCT_COLUMNS if c not in present]
        if missing:
            raise ValidationError(f"Missing required columns: {', '.join(missing)}")

    errors = []
    by_code: dict[str, dict] = {}

    for line_no, raw in enumerate(rows, start=2):
        lowered = {(k or "").strip().lower(): v for k, v in raw.items() if isinstance(k, str)}
        row = {c: _cell(lowered.get(c)) for c in PRODUCT_COLUMNS}
        if not any(row.values()):
            continue  # blank line
        empty = [c for c in PRODUCT_COLUMNS if not row[c]]
        if empty:
            errors.append(f"Row {line_no}: {', '.join(empty)} cannot be blank")
            continue
        by_code[row["code"]] = row

    if errors:
        raise ValidationError(f"Invalid product file ({len(errors)} bad rows)", errors=errors)
    if not by_code:
        raise ValidationError("Product file has no data rows")
    return list(by_code.values())


def parse_products_csv(text: str) -> list[dict]:
    if text.startswith("\ufeff"):
        text = text[1:]
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise ValidationError("CSV header row is required")
    return normalize_product_rows(list(reader), header=list(reader.fieldnames))


def parse_products_xlsx(stream) -> list[dict]:
    from openpyxl import load_workbook
    from openpyxl.utils.exceptions import InvalidFileException

    try:
        wb = load_workbook(stream, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError):
        raise ValidationError("Failed to parse spreadsheet")
    data = list(wb.active.values)
    if not data:
        raise ValidationError("Spreadsheet is empty")
    headers = [str(h) if h is not None else "" for h in data[0]]
    rows = [
        {headers[i]: row[i] for i in range(min(len(headers), len(row)))}
        for row in data[1:]
    ]
    return normalize_product_rows(rows, header=headers)


def import_products(principal: Principal, rows: list[dict], repo=None) -> dict:
    """Upsert already-normalized rows. Returns {"created": n, "updated": m}."""
    repo = repo or get_repository()
    authorize(principal, "MANAGE_PRODUCTS")
    with repo.transaction():
        created, updated = repo.upsert_products(principal.company_id, rows)
    return {"created": created, "updated": updated}


def list_products(principal: Principal, repo=None) -> list[ProductRecord]:
    repo = repo or get_repository()
    authorize(principal, "VIEW_PRODUCTS")
    return repo.list_products(principal.company_id)


def lookup_product(principal: Principal, code: str, repo=None) -> ProductRecord:
    """Exact code match in the caller's company. Used by the scanner's "EAN not found" check."""
    repo = repo or get_repository()
    authorize(principal, "VIEW_PRODUCTS")
    product = repo.get_product(principal.company_id, _cell(code))
    if product is None:
        raise TenantAccessError("Product not found")
    return product


def delete_all_products(principal: Principal, repo=None) -> int:
    repo = repo or get_repository()
    authorize(principal, "MANAGE_PRODUCTS")
    with repo.transaction():
        return repo.delete_all_products(principal.company_id)


def export_products_csv(principal: Principal, repo=None) -> str:
    rows = [p.to_dict() for p in list_products(principal, repo=repo)]
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=PRODUCT_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()
