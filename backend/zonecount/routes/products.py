# Overview: Flask API routes for the product master.

"""
Product master routes.

MULTI-TENANT: products are always read and written in g.company_id.

- Lookup, listing and export require VIEW_PRODUCTS
- Import and delete-all require MANAGE_PRODUCTS
"""
from flask import Blueprint, Response, request, g, current_app

from ..services import product_service
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError
from ..decorators import require_auth, require_permission, validation_error_response


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

XLSX_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products_route():
    products = product_service.list_products(g.principal)
    return {"products": [p.to_dict() for p in products], "count": len(products)}, 200


@products_bp.get("/lookup")
@require_auth
@require_permission("VIEW_PRODUCTS")
def lookup_product_route():
    code = request.args.get("code", "")
    if not code.strip():
        return {"error": "code is required"}, 400
    try:
        product = product_service.lookup_product(g.principal, code)
    except TenantAccessError as e:
        # Plain miss, not a tenant probe: no security event
        return {"error": str(e)}, 404
    return {"product": product.to_dict()}, 200


@products_bp.post("/import")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def import_products_route():
    """
    Import the product master from an uploaded CSV or XLSX file
    (multipart field "file"). Columns code, sku, description are
    required in any order. Any bad row rejects the whole file.
    """
    if "file" not in request.files:
        return {"error": "file is required"}, 400

    file = request.files["file"]
    filename = file.filename or ""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    try:
        if ext == "csv":
            try:
                text = file.stream.read().decode("utf-8")
            except UnicodeDecodeError:
                return {"error": "CSV file must be UTF-8 encoded"}, 400
            rows = product_service.parse_products_csv(text)
        elif ext in XLSX_EXTENSIONS:
            rows = product_service.parse_products_xlsx(file.stream)
        else:
            return {"error": "Unsupported file format"}, 400

        result = product_service.import_products(g.principal, rows)
    except ValidationError as e:
        return validation_error_response(e)

    current_app.logger.info(
        "Imported products for company %s: %d created, %d updated",
        g.company_id, result["created"], result["updated"],
    )
    result["message"] = f"Imported {result['created'] + result['updated']} products."
    return result, 201


@products_bp.get("/export")
@require_auth
@require_permission("VIEW_PRODUCTS")
def export_products_route():
    body = product_service.export_products_csv(g.principal)
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=products.csv"},
    )


@products_bp.delete("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_all_products_route():
    deleted = product_service.delete_all_products(g.principal)
    return {"deleted": deleted, "message": f"Deleted {deleted} products."}, 200
