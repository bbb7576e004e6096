# clinpath_app_pkg/audit/services.py
import uuid
import datetime
from flask import request, g, has_request_context
from .. import db
from ..models import AuditLog


def _request_identity():
    """User id, IP and user agent of the current request, or system defaults outside one."""
    if not has_request_context():
        return None, None, None
    user_id = getattr(g, 'current_user_id', None)
    ip_address = request.remote_addr
    user_agent = request.user_agent.string if request.user_agent else None
    return user_id, ip_address, user_agent


def audit_log_values(action, target_model=None, target_id=None, change_details=None):
    """Column values for one audit_logs row, with the requester captured from the request context."""
    user_id, ip_address, user_agent = _request_identity()
    return {
        "id": str(uuid.uuid4()),
        "action": action,
        "target_model": target_model,
        "target_id": str(target_id) if target_id else None,
        "change_details": change_details,
        "user_id": str(user_id) if user_id else "system",
        "ip_address": ip_address,
        "user_agent": user_agent[:255] if user_agent else None,
        "timestamp": datetime.datetime.utcnow()
    }


def create_audit_log(action, target_model=None, target_id=None, change_details=None, commit=False):
    """
    Creates an audit log entry in the current session.
    The session is not committed automatically unless specified.
    """
    log_entry = AuditLog(**audit_log_values(action, target_model, target_id, change_details))
    db.session.add(log_entry)

    if commit:
        db.session.commit()
    return log_entry


def write_audit_log(connection, action, target_model=None, target_id=None, change_details=None):
    """Insert an audit row on a raw connection. Used from mapper events, where the session is mid-flush."""
    connection.execute(
        AuditLog.__table__.insert().values(**audit_log_values(action, target_model, target_id, change_details))
    )
