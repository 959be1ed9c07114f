# Overview: Product master import/export and lookup.

import io

import pytest
from openpyxl import Workbook

from zonecount.services import product_service
from zonecount.services.permission_service import PermissionDeniedError
from zonecount.services.tenant_service import TenantAccessError
from zonecount.validation import ValidationError


def xlsx_bytes(rows):
    wb = Workbook()
    sheet = wb.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


class TestParseCsv:

    def test_columns_in_any_order(self):
        rows = product_service.parse_products_csv(
            "description,code,sku\n"
            "Stabilo pen,4006381333931,SKU-1\n"
        )
        assert rows == [{"code": "4006381333931", "sku": "SKU-1", "description": "Stabilo pen"}]

    def test_header_case_extra_columns_and_bom(self):
        rows = product_service.parse_products_csv(
            "\ufeffCODE,Sku,Description,Price\n"
            " 123 ,A, Pen ,1.20\n"
        )
        assert rows == [{"code": "123", "sku": "A", "description": "Pen"}]

    def test_missing_column_rejects_file(self):
        with pytest.raises(ValidationError, match="Missing required columns: sku"):
            product_service.parse_products_csv("code,description\n123,Pen\n")

    def test_bad_row_rejects_whole_file(self):
        with pytest.raises(ValidationError) as exc:
            product_service.parse_products_csv(
                "code,sku,description\n"
                "111,A,Pen\n"
                "112,,Pad\n"
                ",C,Ink\n"
            )
        assert exc.value.errors == [
            "Row 3: sku cannot be blank",
            "Row 4: code cannot be blank",
        ]

    def test_blank_lines_skipped_and_last_duplicate_wins(self):
        rows = product_service.parse_products_csv(
            "code,sku,description\n"
            "111,A,Old\n"
            ",,\n"
            "111,A,New\n"
        )
        assert rows == [{"code": "111", "sku": "A", "description": "New"}]

    def test_no_data_rows(self):
        with pytest.raises(ValidationError):
            product_service.parse_products_csv("code,sku,description\n")

    def test_empty_file(self):
        with pytest.raises(ValidationError):
            product_service.parse_products_csv("")


class TestParseXlsx:

    def test_numeric_codes_become_strings(self):
        rows = product_service.parse_products_xlsx(xlsx_bytes([
            ["sku", "code", "description"],
            ["SKU-1", 4006381333931, "Stabilo pen"],
        ]))
        assert rows == [{"code": "4006381333931", "sku": "SKU-1", "description": "Stabilo pen"}]

    def test_not_a_spreadsheet(self):
        with pytest.raises(ValidationError):
            product_service.parse_products_xlsx(io.BytesIO(b"definitely not a zip file"))


class TestProductService:

    def test_import_upserts(self, repo, mem_admin):
        first = product_service.import_products(mem_admin, [
            {"code": "111", "sku": "A", "description": "Pen"},
        ], repo=repo)
        second = product_service.import_products(mem_admin, [
            {"code": "111", "sku": "A", "description": "Blue pen"},
            {"code": "112", "sku": "B", "description": "Pad"},
        ], repo=repo)

        assert first == {"created": 1, "updated": 0}
        assert second == {"created": 1, "updated": 1}
        assert product_service.lookup_product(mem_admin, "111", repo=repo).description == "Blue pen"

    def test_lookup_miss(self, repo, mem_user):
        with pytest.raises(TenantAccessError, match="Product not found"):
            product_service.lookup_product(mem_user, "404", repo=repo)

    def test_lookup_is_company_scoped(self, repo, mem_admin, mem_other_admin):
        product_service.import_products(mem_other_admin, [
            {"code": "111", "sku": "A", "description": "Pen"},
        ], repo=repo)
        with pytest.raises(TenantAccessError):
            product_service.lookup_product(mem_admin, "111", repo=repo)

    def test_user_cannot_import(self, repo, mem_user):
        with pytest.raises(PermissionDeniedError):
            product_service.import_products(mem_user, [{"code": "1", "sku": "A", "description": "Pen"}], repo=repo)

    def test_export_csv(self, repo, mem_admin):
        product_service.import_products(mem_admin, [
            {"code": "222", "sku": "B", "description": "Pad"},
            {"code": "111", "sku": "A", "description": "Pen, blue"},
        ], repo=repo)

        lines = product_service.export_products_csv(mem_admin, repo=repo).splitlines()

        assert lines == ["code,sku,description", '111,A,"Pen, blue"', "222,B,Pad"]

    def test_delete_all(self, repo, mem_admin, mem_other_admin):
        product_service.import_products(mem_admin, [{"code": "1", "sku": "A", "description": "Pen"}], repo=repo)
        product_service.import_products(mem_other_admin, [{"code": "1", "sku": "A", "description": "Pen"}], repo=repo)

        assert product_service.delete_all_products(mem_admin, repo=repo) == 1
        assert len(product_service.list_products(mem_other_admin, repo=repo)) == 1


class TestProductRoutes:

    def test_csv_upload(self, client, admin_a_headers):
        data = {"file": (io.BytesIO(b"code,sku,description\n111,A,Pen\n112,B,Pad\n"), "products.csv")}

        resp = client.post("/api/products/import", headers=admin_a_headers, data=data,
                           content_type="multipart/form-data")

        assert resp.status_code == 201
        assert resp.json["created"] == 2
        listed = client.get("/api/products", headers=admin_a_headers).json
        assert listed["count"] == 2

    def test_xlsx_upload(self, client, admin_a_headers):
        data = {"file": (xlsx_bytes([["code", "sku", "description"], ["111", "A", "Pen"]]), "products.xlsx")}

        resp = client.post("/api/products/import", headers=admin_a_headers, data=data,
                           content_type="multipart/form-data")

        assert resp.status_code == 201

    def test_upload_rejected_file_writes_nothing(self, client, admin_a_headers):
        data = {"file": (io.BytesIO(b"code,sku,description\n111,A,Pen\n112,,Pad\n"), "products.csv")}

        resp = client.post("/api/products/import", headers=admin_a_headers, data=data,
                           content_type="multipart/form-data")

        assert resp.status_code == 400
        assert resp.json["errors"] == ["Row 3: sku cannot be blank"]
        assert client.get("/api/products", headers=admin_a_headers).json["count"] == 0

    def test_upload_requires_file(self, client, admin_a_headers):
        resp = client.post("/api/products/import", headers=admin_a_headers)
        assert resp.status_code == 400

    def test_unsupported_extension(self, client, admin_a_headers):
        data = {"file": (io.BytesIO(b"whatever"), "products.pdf")}
        resp = client.post("/api/products/import", headers=admin_a_headers, data=data,
                           content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_lookup_route(self, client, admin_a_headers, user_a_headers):
        data = {"file": (io.BytesIO(b"code,sku,description\n111,A,Pen\n"), "products.csv")}
        client.post("/api/products/import", headers=admin_a_headers, data=data, content_type="multipart/form-data")

        hit = client.get("/api/products/lookup?code=111", headers=user_a_headers)
        miss = client.get("/api/products/lookup?code=999", headers=user_a_headers)

        assert hit.status_code == 200
        assert hit.json["product"]["sku"] == "A"
        assert miss.status_code == 404

    def test_export_route(self, client, admin_a_headers):
        resp = client.get("/api/products/export", headers=admin_a_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert resp.data.decode("utf-8").splitlines() == ["code,sku,description"]
