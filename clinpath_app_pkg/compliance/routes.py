# clinpath_app_pkg/compliance/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..models import Encounter
from ..utils import permission_required
from .services import (
    upsert_compliance, delete_compliance, bulk_get_compliance,
    bulk_get_effective_compliance, compliance_view
)

compliance_bp = Blueprint('compliance_bp', __name__)


@compliance_bp.route('/compliance/<string:encounter_id>', methods=['GET'])
@permission_required('compliance:read')
def get_encounter_compliance(encounter_id):
    encounter = db.get_or_404(Encounter, encounter_id)
    return jsonify(compliance_view(encounter)), 200


@compliance_bp.route('/compliance/<string:encounter_id>', methods=['PATCH'])
@permission_required('compliance:update')
def update_encounter_compliance(encounter_id):
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "No compliance fields provided."}), 400

    try:
        upsert_compliance(encounter_id, data, updated_by=g.current_user_id)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except SQLAlchemyError:
        return jsonify({"error": "Could not save compliance data. Please retry."}), 503

    encounter = db.session.get(Encounter, encounter_id)
    return jsonify({"message": "Compliance data saved.", "compliance": compliance_view(encounter)}), 200


@compliance_bp.route('/compliance/<string:encounter_id>', methods=['DELETE'])
@permission_required('compliance:update')
def clear_encounter_compliance(encounter_id):
    db.get_or_404(Encounter, encounter_id)
    try:
        removed = delete_compliance(encounter_id)
    except SQLAlchemyError:
        return jsonify({"error": "Could not clear compliance data. Please retry."}), 503
    if not removed:
        return jsonify({"message": "No compliance overrides were stored for this encounter."}), 200
    return jsonify({"message": "Compliance overrides cleared."}), 200


@compliance_bp.route('/compliance/bulk', methods=['POST'])
@permission_required('compliance:read')
def bulk_encounter_compliance():
    data = request.get_json(silent=True) or {}
    encounter_ids = data.get('encounter_ids')
    if not isinstance(encounter_ids, list):
        return jsonify({"error": "'encounter_ids' must be a list."}), 400

    effective = bulk_get_effective_compliance(encounter_ids)
    stored = bulk_get_compliance(list(effective))
    result = {}
    for encounter_id, facts in effective.items():
        record = stored.get(encounter_id)
        result[encounter_id] = {
            "effective": facts.to_dict(),
            "override": record.to_dict() if record else None
        }
    current_app.logger.info(f"[ComplianceStore] Bulk read for {len(encounter_ids)} id(s), {len(result)} found.")
    return jsonify({"compliance": result}), 200
