# clinpath_app_pkg/dashboard/routes.py
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from ..utils import permission_required, parse_month_window_args
from .services import metrics_for, dashboard_overview

dashboard_bp = Blueprint('dashboard_bp', __name__)


@dashboard_bp.route('/dashboard/metrics', methods=['GET'])
@permission_required('dashboard:read')
def get_dashboard_metrics():
    """Compliance metrics for ?month=&year=&diagnosis= (diagnosis defaults to all pathways)."""
    try:
        window = parse_month_window_args(request.args)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    try:
        result = metrics_for(request.args.get('diagnosis', 'all'), window)
    except SQLAlchemyError as e:
        current_app.logger.error(f"[Dashboard] Could not load metrics: {e}")
        return jsonify({"error": "Could not load dashboard metrics. Please retry."}), 503
    return jsonify(result), 200


@dashboard_bp.route('/dashboard/overview', methods=['GET'])
@permission_required('dashboard:read')
def get_dashboard_overview():
    try:
        window = parse_month_window_args(request.args)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    try:
        result = dashboard_overview(request.args.get('diagnosis', 'all'), window)
    except SQLAlchemyError as e:
        current_app.logger.error(f"[Dashboard] Could not load overview: {e}")
        return jsonify({"error": "Could not load the dashboard overview. Please retry."}), 503
    return jsonify(result), 200
