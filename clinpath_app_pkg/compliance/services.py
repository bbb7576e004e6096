# clinpath_app_pkg/compliance/services.py
import uuid
import datetime

from flask import current_app
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..models import Encounter, ChecklistItem, ComplianceRecord, COMPLIANCE_FIELDS
from ..audit.services import create_audit_log
from ..rollup.services import ClassifiedEncounter
from .classifier import CompliancePolicy, classify, effective_facts, CHECKLIST_POLICY


def dialect_insert(model):
    """INSERT construct supporting ON CONFLICT for the bound database."""
    if db.engine.dialect.name == 'postgresql':
        return postgresql.insert(model)
    return sqlite.insert(model)


def current_policy():
    return CompliancePolicy.from_config(current_app.config)


def _validated_partial(partial):
    if not isinstance(partial, dict) or not partial:
        raise ValueError("At least one compliance field is required.")
    unknown = sorted(set(partial) - set(COMPLIANCE_FIELDS))
    if unknown:
        raise ValueError(f"Unknown compliance field(s): {', '.join(unknown)}. Expected: {', '.join(COMPLIANCE_FIELDS)}.")
    for field, value in partial.items():
        if not isinstance(value, bool):
            raise ValueError(f"'{field}' must be a boolean.")
    return dict(partial)


def get_compliance(encounter_id):
    """Stored override row of an encounter, or None. NULL columns were never overridden."""
    return ComplianceRecord.query.filter_by(encounter_id=encounter_id).first()


def bulk_get_compliance(encounter_ids):
    """Map of encounter id -> stored override row. Ids without a row are absent."""
    ids = [str(i) for i in (encounter_ids or [])]
    if not ids:
        return {}
    rows = ComplianceRecord.query.filter(ComplianceRecord.encounter_id.in_(ids)).all()
    return {row.encounter_id: row for row in rows}


def upsert_compliance(encounter_id, partial, updated_by=None):
    """
    Store operator overrides for the supplied fields only.

    Runs as a single INSERT ... ON CONFLICT(encounter_id) DO UPDATE so that two
    operators saving different fields of the same encounter never lose each
    other's values. Raises ValueError for bad input and LookupError when the
    encounter does not exist.
    """
    fields = _validated_partial(partial)
    if db.session.get(Encounter, encounter_id) is None:
        raise LookupError(f"Encounter {encounter_id} not found.")

    now = datetime.datetime.utcnow()
    stmt = dialect_insert(ComplianceRecord).values(
        id=str(uuid.uuid4()),
        encounter_id=encounter_id,
        updated_by=updated_by,
        created_at=now,
        updated_at=now,
        **fields
    )
    set_ = dict(fields)
    set_['updated_by'] = updated_by
    set_['updated_at'] = now
    stmt = stmt.on_conflict_do_update(index_elements=['encounter_id'], set_=set_)

    try:
        db.session.execute(stmt)
        create_audit_log(
            action="COMPLIANCE_OVERRIDE",
            target_model="ComplianceRecord",
            target_id=encounter_id,
            change_details={"fields": fields, "updated_by": updated_by}
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[ComplianceStore] Database error saving overrides for encounter {encounter_id}: {e}")
        raise

    current_app.logger.info(f"[ComplianceStore] Saved {sorted(fields)} for encounter {encounter_id}.")
    return get_compliance(encounter_id)


def delete_compliance(encounter_id):
    """Drop every override of an encounter. Returns False when there was nothing stored."""
    record = get_compliance(encounter_id)
    if record is None:
        return False
    try:
        db.session.delete(record)
        create_audit_log(
            action="COMPLIANCE_OVERRIDE_CLEAR",
            target_model="ComplianceRecord",
            target_id=encounter_id,
            change_details=record.overrides()
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[ComplianceStore] Database error clearing overrides for encounter {encounter_id}: {e}")
        raise
    current_app.logger.info(f"[ComplianceStore] Cleared overrides for encounter {encounter_id}.")
    return True


def _checklists_by_encounter(encounter_ids):
    grouped = {}
    if not encounter_ids:
        return grouped
    items = ChecklistItem.query.filter(ChecklistItem.encounter_id.in_(encounter_ids)).order_by(ChecklistItem.item_index).all()
    for item in items:
        grouped.setdefault(item.encounter_id, []).append(item)
    return grouped


def classify_encounters(encounters, policy=None):
    """Classify encounters and overlay their stored overrides, fetching both in bulk."""
    policy = policy or current_policy()
    encounters = list(encounters)
    ids = [e.id for e in encounters]
    overrides = bulk_get_compliance(ids)
    checklists = _checklists_by_encounter(ids) if policy.derivation == CHECKLIST_POLICY else {}

    classified = []
    for encounter in encounters:
        derived = classify(encounter, checklists.get(encounter.id), policy)
        classified.append(ClassifiedEncounter(
            encounter_id=encounter.id,
            pathway_type=encounter.pathway_type,
            admission_at=encounter.admission_at,
            length_of_stay=encounter.length_of_stay,
            facts=effective_facts(derived, overrides.get(encounter.id)),
            discharge_at=encounter.discharge_at
        ))
    return classified


def get_effective_compliance(encounter_id, policy=None):
    """Effective ComplianceFacts of one encounter (stored overrides over derived values), or None."""
    encounter = db.session.get(Encounter, encounter_id)
    if encounter is None:
        return None
    (classified,) = classify_encounters([encounter], policy)
    return classified.facts


def bulk_get_effective_compliance(encounter_ids, policy=None):
    """Map of encounter id -> effective ComplianceFacts. Unknown ids are absent."""
    ids = [str(i) for i in (encounter_ids or [])]
    if not ids:
        return {}
    encounters = Encounter.query.filter(Encounter.id.in_(ids)).all()
    return {row.encounter_id: row.facts for row in classify_encounters(encounters, policy)}


def compliance_view(encounter, policy=None):
    """Derived, stored and effective facts of one encounter."""
    policy = policy or current_policy()
    derived = classify(encounter, encounter.checklist_items, policy)
    record = get_compliance(encounter.id)
    return {
        "encounter_id": encounter.id,
        "derived": derived.to_dict(),
        "override": record.to_dict() if record else None,
        "effective": effective_facts(derived, record).to_dict()
    }
