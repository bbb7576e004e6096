# clinpath_app_pkg/dashboard/services.py
from flask import current_app

from ..compliance.services import classify_encounters
from ..encounters.services import encounters_in_window, encounters_in_year
from ..rollup.services import (
    EMPTY_METRICS, rollup, metrics_from_summary_rows, filter_by_pathway,
    select_window, pathway_breakdown, monthly_series, patient_totals, is_all_pathways
)
from ..summaries.services import get_monthly_summaries

SOURCE_LIVE = 'live'
SOURCE_MATERIALIZED = 'materialized'
SOURCE_EMPTY = 'empty'


def _materialized_for(materialized_rows, diagnosis_filter):
    if is_all_pathways(diagnosis_filter):
        return list(materialized_rows)
    return [row for row in materialized_rows if row["pathway_type"] == diagnosis_filter]


def compose_metrics(live_rows, materialized_rows, diagnosis_filter, window, prefer_live=True):
    """
    Pick the metrics to display for a month.

    `live_rows` are classified encounters, `materialized_rows` stored monthly
    summary dicts. Live encounters of the window win when present; otherwise the
    stored rows are used even if stale. With `prefer_live=False` stored rows win
    whenever they exist. Returns a dict with the metrics and their `source`.
    """
    live = filter_by_pathway(select_window(live_rows, window), diagnosis_filter)
    stored = _materialized_for(materialized_rows, diagnosis_filter)

    if live and (prefer_live or not stored):
        metrics, source = rollup(live, window), SOURCE_LIVE
    elif stored:
        metrics, source = metrics_from_summary_rows(stored), SOURCE_MATERIALIZED
    else:
        metrics, source = EMPTY_METRICS, SOURCE_EMPTY

    result = metrics.to_dict()
    result.update({
        "source": source,
        "diagnosis": diagnosis_filter or 'all',
        "month": window.month,
        "year": window.year,
    })
    return result


def metrics_for(diagnosis_filter, window):
    live_rows = classify_encounters(encounters_in_window(window, diagnosis_filter))
    materialized_rows = get_monthly_summaries(window)
    prefer_live = current_app.config.get('DASHBOARD_PREFER_LIVE', True)
    result = compose_metrics(live_rows, materialized_rows, diagnosis_filter, window, prefer_live)
    if result["source"] != SOURCE_LIVE:
        current_app.logger.info(
            f"[Dashboard] {window.month}/{window.year} ({result['diagnosis']}) served from {result['source']} data."
        )
    return result


def dashboard_overview(diagnosis_filter, window):
    """Metrics of the month plus the year's monthly series, per-pathway breakdown and patient totals."""
    year_rows = classify_encounters(encounters_in_year(window.year, diagnosis_filter))
    month_rows = select_window(year_rows, window)
    return {
        "metrics": metrics_for(diagnosis_filter, window),
        "monthly_series": monthly_series(year_rows, window.year),
        "pathway_breakdown": pathway_breakdown(month_rows, window),
        "patient_totals": patient_totals(month_rows),
    }
