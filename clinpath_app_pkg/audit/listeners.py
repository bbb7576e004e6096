# clinpath_app_pkg/audit/listeners.py
import datetime
from sqlalchemy import event
from sqlalchemy.orm import attributes
from ..models import Encounter
from .services import write_audit_log

_IGNORED_ATTRIBUTES = ('updated_at', 'checklist_items', 'compliance')


def _json_safe(value):
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    return value


def after_encounter_insert(mapper, connection, target):
    """Listen for new encounters."""
    details = {"message": f"Encounter for RM {target.record_number} created under {target.pathway_type}."}
    write_audit_log(connection, "ENCOUNTER_CREATE", "Encounter", target.id, details)


def after_encounter_update(mapper, connection, target):
    """Record old and new values of every changed column."""
    changes = {}
    state = attributes.instance_state(target)
    for attr in state.attrs:
        if attr.key in _IGNORED_ATTRIBUTES:
            continue
        history = attr.history
        if not history.has_changes():
            continue
        new = history.added[0] if history.added else None
        old = history.deleted[0] if history.deleted else None
        changes[attr.key] = {"new": _json_safe(new), "old": _json_safe(old)}
    if changes:
        write_audit_log(connection, "ENCOUNTER_UPDATE", "Encounter", target.id, changes)


def after_encounter_delete(mapper, connection, target):
    details = {"message": f"Encounter for RM {target.record_number} ({target.pathway_type}) deleted."}
    write_audit_log(connection, "ENCOUNTER_DELETE", "Encounter", target.id, details)


_LISTENERS = (
    ('after_insert', after_encounter_insert),
    ('after_update', after_encounter_update),
    ('after_delete', after_encounter_delete),
)


def register_audit_listeners(app):
    """Called by the app factory to activate the listeners. Safe to call once per app."""
    for identifier, listener in _LISTENERS:
        if not event.contains(Encounter, identifier, listener):
            event.listen(Encounter, identifier, listener)
    app.logger.info("[Audit] Encounter audit listeners registered.")
