# Overview: Dashboard, sales report and activity log routes.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..services import activity_service, reporting_service
from ..services.reporting_service import ReportError

reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/dashboard/stats")
@require_auth
def dashboard_stats_route():
    return jsonify(reporting_service.dashboard_stats(g.store_id))


@reports_bp.get("/reports/sales")
@require_auth
def sales_report_route():
    """
    Query params:
    - from, to: ISO-8601 date or datetime (a bare `to` date includes that whole day)
    - groupBy: day (default) or month
    """
    try:
        report = reporting_service.sales_report(
            store_id=g.store_id,
            start=request.args.get("from"),
            end=request.args.get("to"),
            group_by=request.args.get("groupBy", "day"),
        )
    except ReportError as e:
        return jsonify({"message": str(e)}), 400
    return jsonify(report)


@reports_bp.get("/activity-logs")
@require_auth
def activity_logs_route():
    limit = request.args.get("limit", type=int)
    logs = activity_service.list_activity(g.store_id, limit)
    return jsonify([entry.to_dict() for entry in logs])
