# clinpath_app_pkg/encounters/routes.py
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..models import Encounter
from ..utils import permission_required, parse_month_window_args
from ..compliance.services import classify_encounters, compliance_view
from ..notifications.utils import dispatch_encounter_notification
from .services import (
    EncounterFinalizedError, create_encounter, update_encounter, finalize_encounter,
    delete_encounter, replace_checklist, get_checklist, encounters_query
)

encounters_bp = Blueprint('encounters_bp', __name__)


@encounters_bp.route('/pathways', methods=['POST'])
@permission_required('pathway:create')
def create_pathway_encounter():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "No input data provided."}), 400

    try:
        encounter = create_encounter(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except SQLAlchemyError:
        return jsonify({"error": "Could not save the clinical pathway. Please retry."}), 503

    notification = dispatch_encounter_notification(encounter)
    return jsonify({
        "message": "Clinical pathway created successfully.",
        "encounter": encounter.to_dict(include_checklist=True),
        "notification": notification
    }), 201


@encounters_bp.route('/pathways', methods=['GET'])
@permission_required('pathway:read')
def list_pathway_encounters():
    window = None
    if request.args.get('month') or request.args.get('year'):
        try:
            window = parse_month_window_args(request.args)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)
    query = encounters_query(window, request.args.get('diagnosis'))
    record_number = request.args.get('record_number')
    if record_number:
        query = query.filter(Encounter.record_number == record_number)
    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        "encounters": [e.to_dict() for e in pagination.items],
        "total": pagination.total,
        "page": pagination.page,
        "per_page": pagination.per_page,
        "pages": pagination.pages
    }), 200


@encounters_bp.route('/pathways/recap', methods=['GET'])
@permission_required('pathway:read')
def pathway_recap():
    """Monthly recap table: one numbered row per encounter with its effective compliance facts."""
    try:
        window = parse_month_window_args(request.args)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    encounters = encounters_query(window, request.args.get('diagnosis')).all()
    facts_by_id = {row.encounter_id: row.facts for row in classify_encounters(encounters)}
    rows = []
    for number, encounter in enumerate(encounters, start=1):
        row = {"no": number}
        row.update(encounter.to_dict())
        row.update(facts_by_id[encounter.id].to_dict())
        rows.append(row)
    return jsonify({"window": window.to_dict(), "rows": rows}), 200


@encounters_bp.route('/pathways/<string:encounter_id>', methods=['GET'])
@permission_required('pathway:read')
def get_pathway_encounter(encounter_id):
    encounter = db.get_or_404(Encounter, encounter_id)
    data = encounter.to_dict(include_checklist=True)
    data["compliance"] = compliance_view(encounter)
    return jsonify(data), 200


@encounters_bp.route('/pathways/<string:encounter_id>', methods=['PUT'])
@permission_required('pathway:update')
def update_pathway_encounter(encounter_id):
    encounter = db.get_or_404(Encounter, encounter_id)
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "No update data provided."}), 400

    try:
        update_encounter(encounter, data)
    except EncounterFinalizedError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except SQLAlchemyError:
        return jsonify({"error": "Could not update the clinical pathway. Please retry."}), 503
    return jsonify({"message": "Clinical pathway updated.", "encounter": encounter.to_dict()}), 200


@encounters_bp.route('/pathways/<string:encounter_id>/finalize', methods=['POST'])
@permission_required('pathway:update')
def finalize_pathway_encounter(encounter_id):
    encounter = db.get_or_404(Encounter, encounter_id)
    try:
        finalize_encounter(encounter)
    except SQLAlchemyError:
        return jsonify({"error": "Could not finalize the clinical pathway. Please retry."}), 503
    return jsonify({"message": "Clinical pathway finalized.", "encounter": encounter.to_dict()}), 200


@encounters_bp.route('/pathways/<string:encounter_id>', methods=['DELETE'])
@permission_required('pathway:delete')
def delete_pathway_encounter(encounter_id):
    encounter = db.get_or_404(Encounter, encounter_id)
    try:
        delete_encounter(encounter)
    except SQLAlchemyError:
        return jsonify({"error": "Could not delete the clinical pathway. Please retry."}), 503
    return jsonify({"message": "Clinical pathway deleted."}), 200


@encounters_bp.route('/pathways/<string:encounter_id>/checklist', methods=['PUT'])
@permission_required('pathway:update')
def save_pathway_checklist(encounter_id):
    encounter = db.get_or_404(Encounter, encounter_id)
    data = request.get_json(silent=True)
    items = data.get('items') if isinstance(data, dict) else data
    if items is None:
        return jsonify({"error": "A list of checklist items is required."}), 400

    try:
        saved = replace_checklist(encounter, items)
    except EncounterFinalizedError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except SQLAlchemyError:
        return jsonify({"error": "Could not save the checklist. Please retry."}), 503
    current_app.logger.debug(f"[EncounterStore] Checklist of {encounter_id} now has {len(saved)} item(s).")
    return jsonify({"message": "Checklist saved.", "checklist": [item.to_dict() for item in saved]}), 200


@encounters_bp.route('/pathways/<string:encounter_id>/checklist', methods=['GET'])
@permission_required('pathway:read')
def get_pathway_checklist(encounter_id):
    db.get_or_404(Encounter, encounter_id)
    return jsonify({"checklist": [item.to_dict() for item in get_checklist(encounter_id)]}), 200
