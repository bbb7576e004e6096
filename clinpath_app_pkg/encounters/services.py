# clinpath_app_pkg/encounters/services.py
import math
import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..models import Encounter, ChecklistItem, DAY_SLOT_COLUMNS
from ..pathways.policy import PathwayType, day_slots
from ..rollup.services import is_all_pathways
from ..utils import combine_date_time

SECONDS_PER_DAY = 24 * 60 * 60


class EncounterFinalizedError(Exception):
    """Raised when an operator tries to edit an encounter that has been finalized."""


def compute_length_of_stay(admission_at, discharge_at):
    """Whole days of stay, rounded up. None while the patient is still admitted."""
    if admission_at is None or discharge_at is None:
        return None
    elapsed = (discharge_at - admission_at).total_seconds()
    if elapsed < 0:
        raise ValueError("Discharge must not be earlier than admission.")
    return math.ceil(elapsed / SECONDS_PER_DAY)


def _require_text(data, field, label):
    value = data.get(field)
    if not value or not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} is required.")
    return value.strip()


def _validated_pathway_type(value):
    if not isinstance(value, str) or not PathwayType.is_valid(value):
        raise ValueError(f"Unknown clinical pathway type '{value}'. Expected one of: {', '.join(PathwayType.values())}.")
    return PathwayType(value).value


def _discharge_from(data):
    if not data.get('discharge_date'):
        return None
    return combine_date_time(data['discharge_date'], data.get('discharge_time'))


def _commit(action):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[EncounterStore] Database error while {action}: {e}")
        raise


def create_encounter(data):
    """Create an encounter (and optionally its checklist) from the admission form payload."""
    patient_name = _require_text(data, 'patient_name', "Patient name")
    record_number = _require_text(data, 'record_number', "Record number (No. RM)")
    pathway_type = _validated_pathway_type(data.get('pathway_type'))
    if not data.get('admission_date'):
        raise ValueError("Admission date is required.")
    admission_at = combine_date_time(data['admission_date'], data.get('admission_time'))
    discharge_at = _discharge_from(data)
    length_of_stay = compute_length_of_stay(admission_at, discharge_at)
    checklist_items = None
    if data.get('checklist') is not None:
        checklist_items = _build_checklist_items(pathway_type, data['checklist'])

    encounter = Encounter(
        patient_name=patient_name,
        record_number=record_number,
        pathway_type=pathway_type,
        admission_at=admission_at,
        discharge_at=discharge_at,
        length_of_stay=length_of_stay,
        dpjp=data.get('dpjp'),
        verifier=data.get('verifier'),
        ward=data.get('ward')
    )
    if checklist_items is not None:
        encounter.checklist_items = checklist_items
    db.session.add(encounter)
    _commit("creating encounter")
    current_app.logger.info(f"[EncounterStore] Created encounter {encounter.id} ({encounter.pathway_type}, RM {encounter.record_number}).")
    return encounter


UPDATABLE_TEXT_FIELDS = ('patient_name', 'record_number', 'dpjp', 'verifier', 'ward')
REQUIRED_TEXT_FIELDS = {'patient_name': "Patient name", 'record_number': "Record number (No. RM)"}


def update_encounter(encounter, data):
    """
    Apply discharge fields and editable details. LOS is always recomputed from
    the resulting timestamps, never taken from the payload.
    """
    if encounter.is_finalized:
        raise EncounterFinalizedError(f"Encounter {encounter.id} is finalized and can no longer be edited.")

    try:
        for field in UPDATABLE_TEXT_FIELDS:
            if field in data:
                setattr(encounter, field, data[field])
        for field, label in REQUIRED_TEXT_FIELDS.items():
            if field in data:
                setattr(encounter, field, _require_text(data, field, label))
        if 'pathway_type' in data:
            pathway_type = _validated_pathway_type(data['pathway_type'])
            if pathway_type != encounter.pathway_type:
                _check_checklist_fits(encounter.id, pathway_type)
            encounter.pathway_type = pathway_type
        if 'admission_date' in data:
            encounter.admission_at = combine_date_time(data['admission_date'], data.get('admission_time'))
        elif 'admission_time' in data:
            encounter.admission_at = combine_date_time(encounter.admission_at.date().isoformat(), data['admission_time'])
        if 'discharge_date' in data:
            encounter.discharge_at = _discharge_from(data)
        encounter.length_of_stay = compute_length_of_stay(encounter.admission_at, encounter.discharge_at)
    except ValueError:
        db.session.rollback()
        raise
    _commit(f"updating encounter {encounter.id}")
    return encounter


def finalize_encounter(encounter):
    if not encounter.is_finalized:
        encounter.is_finalized = True
        encounter.finalized_at = datetime.datetime.utcnow()
        _commit(f"finalizing encounter {encounter.id}")
    return encounter


def delete_encounter(encounter):
    """Operator delete. Checklist items and compliance overrides go with it."""
    encounter_id = encounter.id
    db.session.delete(encounter)
    _commit(f"deleting encounter {encounter_id}")
    current_app.logger.info(f"[EncounterStore] Deleted encounter {encounter_id}.")


def _day_flags(item):
    if 'days' in item:
        days = item['days']
        if not isinstance(days, list):
            raise ValueError("'days' must be a list of booleans.")
        flags = list(days)
    else:
        flags = [item.get(column, False) for column in DAY_SLOT_COLUMNS]
    if len(flags) > len(DAY_SLOT_COLUMNS):
        raise ValueError(f"A checklist item has at most {len(DAY_SLOT_COLUMNS)} day slots.")
    if any(not isinstance(flag, bool) for flag in flags):
        raise ValueError("Checklist day slots must be booleans.")
    return flags + [False] * (len(DAY_SLOT_COLUMNS) - len(flags))


def _build_checklist_items(pathway_type, items):
    if not isinstance(items, list):
        raise ValueError("Checklist must be a list of items.")
    slots = day_slots(pathway_type)
    built = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError("Each checklist item must be an object.")
        text = item.get('item_text') or item.get('text')
        if not text:
            raise ValueError(f"Checklist item {index} has no text.")
        flags = _day_flags(item)
        if any(flags[slots:]):
            raise ValueError(f"{pathway_type} checklists only have {slots} day slots.")
        checklist_item = ChecklistItem(
            item_index=index,
            item_text=text,
            variant_notes=item.get('variant_notes') or None
        )
        for column, flag in zip(DAY_SLOT_COLUMNS, flags):
            setattr(checklist_item, column, flag)
        built.append(checklist_item)
    return built


def _check_checklist_fits(encounter_id, pathway_type):
    """The stored checklist must not use day slots the new pathway does not have."""
    slots = day_slots(pathway_type)
    with db.session.no_autoflush:
        items = get_checklist(encounter_id)
    for item in items:
        if any(item.day_flags[slots:]):
            raise ValueError(
                f"Checklist item {item.item_index} uses day slots beyond the {slots} of {pathway_type}; "
                f"update the checklist first."
            )


def replace_checklist(encounter, items):
    """Replace the encounter's whole checklist. Items are re-indexed in submitted order."""
    if encounter.is_finalized:
        raise EncounterFinalizedError(f"Encounter {encounter.id} is finalized and can no longer be edited.")
    new_items = _build_checklist_items(encounter.pathway_type, items)
    ChecklistItem.query.filter_by(encounter_id=encounter.id).delete(synchronize_session=False)
    for item in new_items:
        item.encounter_id = encounter.id
    db.session.add_all(new_items)
    _commit(f"replacing checklist of encounter {encounter.id}")
    current_app.logger.info(f"[EncounterStore] Saved {len(new_items)} checklist item(s) for encounter {encounter.id}.")
    return get_checklist(encounter.id)


def get_checklist(encounter_id):
    return ChecklistItem.query.filter_by(encounter_id=encounter_id).order_by(ChecklistItem.item_index).all()


def encounters_query(window=None, diagnosis_filter=None):
    query = Encounter.query
    if window is not None:
        query = query.filter(Encounter.admission_at >= window.start, Encounter.admission_at < window.end)
    if not is_all_pathways(diagnosis_filter):
        query = query.filter(Encounter.pathway_type == diagnosis_filter)
    return query.order_by(Encounter.admission_at.asc())


def encounters_in_window(window, diagnosis_filter=None):
    return encounters_query(window, diagnosis_filter).all()


def encounters_in_year(year, diagnosis_filter=None):
    query = Encounter.query.filter(
        Encounter.admission_at >= datetime.datetime(year, 1, 1),
        Encounter.admission_at < datetime.datetime(year + 1, 1, 1)
    )
    if not is_all_pathways(diagnosis_filter):
        query = query.filter(Encounter.pathway_type == diagnosis_filter)
    return query.order_by(Encounter.admission_at.asc()).all()
