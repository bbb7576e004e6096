# clinpath_app_pkg/notifications/utils.py
from flask import current_app

MISSING_VALUE = "Belum ditentukan"


def notification_context(encounter):
    """Placeholder values for an encounter, keyed by the names used in message templates."""
    admission_at = encounter.admission_at
    return {
        "nama_pasien": encounter.patient_name,
        "no_rm": encounter.record_number,
        "jenis_clinical_pathway": encounter.pathway_type,
        "tanggal_masuk": admission_at.date().isoformat() if admission_at else None,
        "jam_masuk": admission_at.strftime('%H:%M') if admission_at else None,
        "dpjp": encounter.dpjp,
        "verifikator_pelaksana": encounter.verifier,
    }


def render_notification_message(encounter, template):
    """
    Fill `{placeholder}` tokens of `template` with the encounter's values.
    Missing values read "Belum ditentukan"; placeholders we do not know are left as written.
    """
    message = template or ""
    for key, value in notification_context(encounter).items():
        text = str(value).strip() if value is not None else ""
        message = message.replace("{" + key + "}", text or MISSING_VALUE)
    return message


def log_only_sender(recipient, message):
    """Default sender used when the deployment registers no messaging gateway."""
    current_app.logger.info(f"[Notification] (log only) to {recipient}: {message!r}")


def dispatch_encounter_notification(encounter):
    """
    Hand the rendered new-encounter message to the registered sender, once per
    configured recipient. Failures are logged and reported; they never propagate.
    """
    config = current_app.config
    result = {"sent": [], "failed": [], "skipped": None}
    if not config.get('NOTIFICATIONS_ENABLED', True):
        result["skipped"] = "disabled"
        return result
    recipients = config.get('NOTIFICATION_RECIPIENTS') or []
    if not recipients:
        current_app.logger.warning(f"[Notification] No recipients configured; nothing sent for encounter {encounter.id}.")
        result["skipped"] = "no_recipients"
        return result

    sender = current_app.extensions.get('notification_sender', log_only_sender)
    message = render_notification_message(encounter, config.get('NOTIFICATION_MESSAGE_TEMPLATE'))
    for recipient in recipients:
        try:
            sender(recipient, message)
        except Exception as e:
            current_app.logger.error(f"[Notification] Sending to {recipient} failed for encounter {encounter.id}: {e}")
            result["failed"].append({"recipient": recipient, "error": str(e)})
            continue
        result["sent"].append(recipient)
    current_app.logger.info(
        f"[Notification] Encounter {encounter.id}: {len(result['sent'])} sent, {len(result['failed'])} failed."
    )
    return result
