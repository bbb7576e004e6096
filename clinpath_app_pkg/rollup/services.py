# clinpath_app_pkg/rollup/services.py
"""
Monthly rollups of classified encounters.

Everything in this module is a pure function over already-classified
encounters; fetching and classifying them is the caller's job.
"""
import datetime
from collections import OrderedDict
from dataclasses import dataclass, asdict

from ..compliance.classifier import ComplianceFacts

ALL_PATHWAYS = 'all'
MONTH_LABELS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


@dataclass(frozen=True)
class MonthWindow:
    month: int
    year: int

    def __post_init__(self):
        if not 1 <= int(self.month) <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")
        if not 1 <= int(self.year) <= 9998:
            raise ValueError(f"year must be between 1 and 9998, got {self.year}")

    @property
    def start(self):
        return datetime.datetime(self.year, self.month, 1)

    @property
    def end(self):
        """Exclusive upper bound: the first instant of the following month."""
        if self.month == 12:
            return datetime.datetime(self.year + 1, 1, 1)
        return datetime.datetime(self.year, self.month + 1, 1)

    def contains(self, moment):
        return moment is not None and self.start <= moment < self.end

    def to_dict(self):
        return {"month": self.month, "year": self.year}


@dataclass(frozen=True)
class ClassifiedEncounter:
    encounter_id: str
    pathway_type: str
    admission_at: datetime.datetime
    length_of_stay: object # int or None while inpatient
    facts: ComplianceFacts
    discharge_at: object = None


@dataclass(frozen=True)
class RollupMetrics:
    total_patients: int = 0
    pathway_compliance_pct: float = 0
    los_compliance_pct: float = 0
    therapy_compliance_pct: float = 0
    support_compliance_pct: float = 0
    avg_los: float = 0

    def to_dict(self):
        return asdict(self)


EMPTY_METRICS = RollupMetrics()


def is_all_pathways(diagnosis_filter):
    return diagnosis_filter is None or diagnosis_filter == '' or diagnosis_filter == ALL_PATHWAYS


def filter_by_pathway(classified, diagnosis_filter):
    if is_all_pathways(diagnosis_filter):
        return list(classified)
    return [row for row in classified if row.pathway_type == diagnosis_filter]


def select_window(classified, window):
    return [row for row in classified if window.contains(row.admission_at)]


def _metrics(rows):
    n = len(rows)
    if n == 0:
        return EMPTY_METRICS
    return RollupMetrics(
        total_patients=n,
        pathway_compliance_pct=100 * sum(1 for r in rows if r.facts.kepatuhan_cp) / n,
        los_compliance_pct=100 * sum(1 for r in rows if r.facts.sesuai_target) / n,
        therapy_compliance_pct=100 * sum(1 for r in rows if r.facts.kepatuhan_terapi) / n,
        support_compliance_pct=100 * sum(1 for r in rows if r.facts.kepatuhan_penunjang) / n,
        avg_los=sum(r.length_of_stay or 0 for r in rows) / n,
    )


def rollup(classified, window, diagnosis_filter=None) -> RollupMetrics:
    """
    Compliance percentages and average LOS over the encounters admitted in
    `window`, optionally restricted to one pathway type.

    Encounters without a LOS count in the denominator and contribute 0 days
    to the LOS sum. Percentages are not rounded.
    """
    rows = filter_by_pathway(select_window(classified, window), diagnosis_filter)
    return _metrics(rows)


def _group_by_pathway(rows):
    groups = OrderedDict()
    for row in sorted(rows, key=lambda r: r.pathway_type):
        groups.setdefault(row.pathway_type, []).append(row)
    return groups


def monthly_summary_rows(classified, window):
    """Count rows per pathway type, in the shape stored in monthly_summaries."""
    summaries = []
    for pathway_type, rows in _group_by_pathway(select_window(classified, window)).items():
        n = len(rows)
        summaries.append({
            "month": window.month,
            "year": window.year,
            "pathway_type": pathway_type,
            "total_patients": n,
            "sesuai_target_count": sum(1 for r in rows if r.facts.sesuai_target),
            "kepatuhan_cp_count": sum(1 for r in rows if r.facts.kepatuhan_cp),
            "kepatuhan_penunjang_count": sum(1 for r in rows if r.facts.kepatuhan_penunjang),
            "kepatuhan_terapi_count": sum(1 for r in rows if r.facts.kepatuhan_terapi),
            "avg_los": sum(r.length_of_stay or 0 for r in rows) / n,
        })
    return summaries


def metrics_from_summary_rows(summary_rows, diagnosis_filter=None) -> RollupMetrics:
    """Recombine stored count rows into metrics, weighting each row by its patient count."""
    if not is_all_pathways(diagnosis_filter):
        summary_rows = [row for row in summary_rows if row["pathway_type"] == diagnosis_filter]
    n = sum(row["total_patients"] or 0 for row in summary_rows)
    if n == 0:
        return EMPTY_METRICS

    def pct(key):
        return 100 * sum(row[key] or 0 for row in summary_rows) / n

    return RollupMetrics(
        total_patients=n,
        pathway_compliance_pct=pct("kepatuhan_cp_count"),
        los_compliance_pct=pct("sesuai_target_count"),
        therapy_compliance_pct=pct("kepatuhan_terapi_count"),
        support_compliance_pct=pct("kepatuhan_penunjang_count"),
        avg_los=sum((row["avg_los"] or 0) * (row["total_patients"] or 0) for row in summary_rows) / n,
    )


def pathway_breakdown(classified, window):
    """Per-pathway compliance and LOS spread for the window (discharged encounters only for min/max)."""
    breakdown = []
    for pathway_type, rows in _group_by_pathway(select_window(classified, window)).items():
        metrics = _metrics(rows)
        stays = [r.length_of_stay for r in rows if r.length_of_stay is not None]
        entry = {"pathway_type": pathway_type}
        entry.update(metrics.to_dict())
        entry.update({
            "discharged_cases": len(stays),
            "min_los": min(stays) if stays else None,
            "max_los": max(stays) if stays else None,
            "avg_los_discharged": sum(stays) / len(stays) if stays else 0,
        })
        breakdown.append(entry)
    return breakdown


def monthly_series(classified, year, diagnosis_filter=None):
    """One rollup per calendar month of `year`, for charts."""
    series = []
    for month in range(1, 13):
        metrics = rollup(classified, MonthWindow(month, year), diagnosis_filter)
        point = {"month": month, "label": MONTH_LABELS[month - 1], "year": year}
        point.update(metrics.to_dict())
        series.append(point)
    return series


def patient_totals(classified):
    rows = list(classified)
    discharged = sum(1 for r in rows if r.discharge_at is not None)
    return {
        "total_patients": len(rows),
        "discharged_patients": discharged,
        "active_patients": len(rows) - discharged,
    }
