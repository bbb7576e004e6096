# clinpath_app_pkg/summaries/services.py
"""
Checklist completion summaries and the "generate summary" action.

Summary rows are keyed by (month, year, pathway_type) and written with an
upsert, so generating the same month again replaces the stored values.
"""
import uuid
import datetime
from collections import OrderedDict

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..models import ChecklistItem, ChecklistSummary, MonthlySummary
from ..compliance.services import dialect_insert, classify_encounters
from ..encounters.services import encounters_in_window
from ..rollup.services import monthly_summary_rows, is_all_pathways

SUMMARY_KEY = ['month', 'year', 'pathway_type']
CHECKLIST_SUMMARY_FIELDS = ('total_checklist_items', 'completed_items', 'completion_percentage', 'total_patients', 'data_detail')
MONTHLY_SUMMARY_FIELDS = (
    'total_patients', 'sesuai_target_count', 'kepatuhan_cp_count',
    'kepatuhan_penunjang_count', 'kepatuhan_terapi_count', 'avg_los'
)


def _completion_percentage(completed, total):
    return 100.0 * completed / total if total else 0.0


def aggregate_checklist(window, diagnosis_filter=None):
    """
    One row per pathway type admitted in `window`: checklist items of all its
    encounters, how many were performed on at least one day, and a per-item breakdown.
    """
    encounters = encounters_in_window(window, diagnosis_filter)
    if not encounters:
        return []

    items_by_encounter = {}
    items = ChecklistItem.query.filter(
        ChecklistItem.encounter_id.in_([e.id for e in encounters])
    ).order_by(ChecklistItem.encounter_id, ChecklistItem.item_index).all()
    for item in items:
        items_by_encounter.setdefault(item.encounter_id, []).append(item)

    groups = OrderedDict()
    for encounter in sorted(encounters, key=lambda e: e.pathway_type):
        group = groups.setdefault(encounter.pathway_type, {"patients": 0, "total": 0, "completed": 0, "detail": OrderedDict()})
        group["patients"] += 1
        for item in items_by_encounter.get(encounter.id, []):
            group["total"] += 1
            detail = group["detail"].setdefault(item.item_text, {"total": 0, "completed": 0})
            detail["total"] += 1
            if item.is_completed:
                group["completed"] += 1
                detail["completed"] += 1

    rows = []
    for pathway_type, group in groups.items():
        for detail in group["detail"].values():
            detail["completion_percentage"] = _completion_percentage(detail["completed"], detail["total"])
        rows.append({
            "month": window.month,
            "year": window.year,
            "pathway_type": pathway_type,
            "total_checklist_items": group["total"],
            "completed_items": group["completed"],
            "completion_percentage": _completion_percentage(group["completed"], group["total"]),
            "total_patients": group["patients"],
            "data_detail": dict(group["detail"]),
        })
    return rows


def _upsert_summary(model, row, fields, label):
    now = datetime.datetime.utcnow()
    values = {key: row[key] for key in SUMMARY_KEY}
    values.update({field: row.get(field) for field in fields})
    stmt = dialect_insert(model).values(id=str(uuid.uuid4()), created_at=now, updated_at=now, **values)
    set_ = {field: stmt.excluded[field] for field in fields}
    set_['updated_at'] = now
    stmt = stmt.on_conflict_do_update(index_elements=SUMMARY_KEY, set_=set_)
    try:
        db.session.execute(stmt)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(
            f"[SummaryService] Could not store {label} for {row['pathway_type']} {row['month']}/{row['year']}: {e}"
        )
        raise


def persist_checklist_summary(row):
    """Insert or replace the checklist summary row of (month, year, pathway_type)."""
    _upsert_summary(ChecklistSummary, row, CHECKLIST_SUMMARY_FIELDS, "checklist summary")


def persist_monthly_summary(row):
    _upsert_summary(MonthlySummary, row, MONTHLY_SUMMARY_FIELDS, "monthly summary")


def _persist_each(rows, persist):
    succeeded, failed = [], []
    for row in rows:
        try:
            persist(row)
        except SQLAlchemyError as e:
            failed.append({"pathway_type": row["pathway_type"], "error": str(e)})
            continue
        succeeded.append(row["pathway_type"])
    return succeeded, failed


def generate_summary_for_month(window):
    """
    Recompute and store every summary of `window`. Each pathway type is stored in
    its own transaction, so one failing type does not stop the others.
    """
    checklist_rows = aggregate_checklist(window)
    succeeded, failed = _persist_each(checklist_rows, persist_checklist_summary)

    classified = classify_encounters(encounters_in_window(window))
    monthly_succeeded, monthly_failed = _persist_each(monthly_summary_rows(classified, window), persist_monthly_summary)

    if failed or monthly_failed:
        current_app.logger.warning(
            f"[SummaryService] {window.month}/{window.year}: checklist failed for {[f['pathway_type'] for f in failed]}, "
            f"monthly failed for {[f['pathway_type'] for f in monthly_failed]}."
        )
    current_app.logger.info(
        f"[SummaryService] Generated {window.month}/{window.year}: {len(succeeded)} checklist and {len(monthly_succeeded)} monthly row(s) stored."
    )
    return {
        "month": window.month,
        "year": window.year,
        "succeeded": succeeded,
        "failed": failed,
        "monthly": {"succeeded": monthly_succeeded, "failed": monthly_failed},
    }


def get_checklist_summary(window, diagnosis_filter=None):
    query = ChecklistSummary.query.filter_by(month=window.month, year=window.year)
    if not is_all_pathways(diagnosis_filter):
        query = query.filter_by(pathway_type=diagnosis_filter)
    return query.order_by(ChecklistSummary.pathway_type).all()


def get_monthly_summaries(window):
    """Materialized monthly count rows of `window`, as dicts."""
    rows = MonthlySummary.query.filter_by(month=window.month, year=window.year).order_by(MonthlySummary.pathway_type).all()
    return [row.to_dict() for row in rows]
