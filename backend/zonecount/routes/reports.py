from flask import Blueprint, Response, request, g

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from zonecount.time_utils import utcnow


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/counts")
@require_auth
@require_permission("VIEW_REPORTS")
def counts_report_route():
    rows = reporting_service.counts_report(g.principal)
    return {
        "rows": rows,
        "needs_third_count": sum(1 for r in rows if r["needs_third_count"]),
    }, 200


@reports_bp.get("/sku-summary")
@require_auth
@require_permission("VIEW_REPORTS")
def sku_summary_route():
    return {"rows": reporting_service.sku_summary(g.principal)}, 200


@reports_bp.get("/zone-summary")
@require_auth
@require_permission("VIEW_REPORTS")
def zone_summary_route():
    return {"rows": reporting_service.zone_summary(g.principal)}, 200


@reports_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_REPORTS")
def dashboard_route():
    return reporting_service.dashboard_stats(g.principal, now=utcnow()), 200


@reports_bp.get("/<name>/export")
@require_auth
@require_permission("VIEW_REPORTS")
def export_report_route(name: str):
    """Download a report. Query param format: csv (default) or xlsx."""
    fmt = request.args.get("format", "csv").lower()
    try:
        body, mimetype, filename = reporting_service.export_report(g.principal, name, fmt)
    except reporting_service.ReportError as exc:
        return {"error": str(exc)}, 400

    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
