# clinpath_app_pkg/summaries/routes.py
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from ..utils import permission_required, parse_month_window_args
from .services import aggregate_checklist, generate_summary_for_month, get_checklist_summary

summaries_bp = Blueprint('summaries_bp', __name__)


@summaries_bp.route('/summaries/generate', methods=['POST'])
@permission_required('summary:generate')
def generate_summary():
    """Recompute the stored summaries of a month. Safe to call repeatedly."""
    data = request.get_json(silent=True) or {}
    args = {'month': data.get('month', request.args.get('month')), 'year': data.get('year', request.args.get('year'))}
    try:
        window = parse_month_window_args(args)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        result = generate_summary_for_month(window)
    except SQLAlchemyError as e:
        current_app.logger.error(f"[SummaryService] Could not read encounters for {window.month}/{window.year}: {e}")
        return jsonify({"error": "Could not generate the summary. Please retry."}), 503

    phases = (result, result["monthly"])
    if any(phase["failed"] and not phase["succeeded"] for phase in phases):
        return jsonify({"error": "Every checklist or every monthly summary failed to store.", "result": result}), 500
    return jsonify({"message": "Summary generated.", "result": result}), 200


@summaries_bp.route('/summaries/checklist', methods=['GET'])
@permission_required('summary:read')
def list_checklist_summaries():
    try:
        window = parse_month_window_args(request.args)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    rows = get_checklist_summary(window, request.args.get('diagnosis'))
    return jsonify({"window": window.to_dict(), "summaries": [row.to_dict() for row in rows]}), 200


@summaries_bp.route('/summaries/checklist/aggregate', methods=['GET'])
@permission_required('summary:read')
def preview_checklist_aggregate():
    """Live aggregation for the month, without storing anything."""
    try:
        window = parse_month_window_args(request.args)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    rows = aggregate_checklist(window, request.args.get('diagnosis'))
    return jsonify({"window": window.to_dict(), "summaries": rows}), 200
