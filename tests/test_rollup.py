"""Tests for the monthly rollup aggregator."""

import datetime

import pytest

from clinpath_app_pkg.compliance.classifier import ComplianceFacts
from clinpath_app_pkg.rollup.services import (
    MonthWindow, ClassifiedEncounter, RollupMetrics, rollup, monthly_summary_rows,
    metrics_from_summary_rows, pathway_breakdown, monthly_series, patient_totals,
)

MARCH = MonthWindow(3, 2024)


def row(pathway_type="Pneumonia", day=10, los=3, cp=True, target=True, therapy=True, support=True, month=3, year=2024):
    admission = datetime.datetime(year, month, day, 9, 0)
    discharge = admission + datetime.timedelta(days=los) if los is not None else None
    return ClassifiedEncounter(
        encounter_id=f"{pathway_type}-{month}-{day}",
        pathway_type=pathway_type,
        admission_at=admission,
        length_of_stay=los,
        facts=ComplianceFacts(target, cp, support, therapy),
        discharge_at=discharge,
    )


class TestMonthWindow:

    def test_bounds_are_half_open(self):
        assert MARCH.contains(datetime.datetime(2024, 3, 1))
        assert MARCH.contains(datetime.datetime(2024, 3, 31, 23, 59))
        assert not MARCH.contains(datetime.datetime(2024, 4, 1))

    def test_december_rolls_into_next_year(self):
        december = MonthWindow(12, 2024)
        assert december.end == datetime.datetime(2025, 1, 1)
        assert december.contains(datetime.datetime(2024, 12, 31, 22, 0))

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month(self, month):
        with pytest.raises(ValueError):
            MonthWindow(month, 2024)

    @pytest.mark.parametrize("year", [0, -1, 9999])
    def test_invalid_year(self, year):
        with pytest.raises(ValueError):
            MonthWindow(3, year)


class TestRollup:

    def test_empty_set_is_all_zeros(self):
        metrics = rollup([], MARCH)
        assert metrics == RollupMetrics(0, 0, 0, 0, 0, 0)
        assert metrics.to_dict() == {
            "total_patients": 0, "pathway_compliance_pct": 0, "los_compliance_pct": 0,
            "therapy_compliance_pct": 0, "support_compliance_pct": 0, "avg_los": 0,
        }

    def test_three_of_four_cp_compliant(self):
        rows = [row(day=d, cp=d != 4) for d in (1, 2, 3, 4)]
        assert rollup(rows, MARCH, "Pneumonia").pathway_compliance_pct == 75

    def test_inpatients_count_in_denominator_only(self):
        rows = [row(day=1, los=4), row(day=2, los=None, target=False)]
        metrics = rollup(rows, MARCH)
        assert metrics.total_patients == 2
        assert metrics.avg_los == 2
        assert metrics.los_compliance_pct == 50

    def test_outside_window_and_filter_are_excluded(self):
        rows = [row(), row(month=4), row(pathway_type="Dengue Fever", cp=False)]
        assert rollup(rows, MARCH).total_patients == 2
        assert rollup(rows, MARCH, "all").total_patients == 2
        assert rollup(rows, MARCH, "Dengue Fever").pathway_compliance_pct == 0
        assert rollup(rows, MARCH, "Appendicitis").total_patients == 0

    def test_percentages_are_not_rounded(self):
        rows = [row(day=1), row(day=2, therapy=False), row(day=3, therapy=False)]
        assert rollup(rows, MARCH).therapy_compliance_pct == pytest.approx(100 / 3)


class TestSummaryRows:

    def test_counts_per_pathway(self):
        rows = [row(), row(day=11, los=5, target=False), row(pathway_type="Dengue Fever", los=2)]
        summaries = monthly_summary_rows(rows, MARCH)
        assert [s["pathway_type"] for s in summaries] == ["Dengue Fever", "Pneumonia"]
        pneumonia = summaries[1]
        assert pneumonia["total_patients"] == 2
        assert pneumonia["sesuai_target_count"] == 1
        assert pneumonia["avg_los"] == 4

    def test_recombined_metrics_match_live_rollup(self):
        rows = [row(), row(day=11, los=5, cp=False), row(pathway_type="Dengue Fever", los=2, support=False)]
        stored = monthly_summary_rows(rows, MARCH)
        assert metrics_from_summary_rows(stored) == rollup(rows, MARCH)
        assert metrics_from_summary_rows(stored, "Pneumonia") == rollup(rows, MARCH, "Pneumonia")

    def test_no_rows_is_empty(self):
        assert metrics_from_summary_rows([]).total_patients == 0


def test_pathway_breakdown_reports_los_spread():
    rows = [row(los=2), row(day=11, los=7), row(day=12, los=None)]
    (entry,) = pathway_breakdown(rows, MARCH)
    assert entry["total_patients"] == 3
    assert entry["discharged_cases"] == 2
    assert (entry["min_los"], entry["max_los"]) == (2, 7)
    assert entry["avg_los_discharged"] == 4.5


def test_monthly_series_has_twelve_points():
    series = monthly_series([row(), row(month=7)], 2024)
    assert len(series) == 12
    assert series[2]["total_patients"] == 1
    assert series[6]["label"] == "Jul"
    assert series[0]["total_patients"] == 0


def test_patient_totals():
    totals = patient_totals([row(), row(day=2, los=None)])
    assert totals == {"total_patients": 2, "discharged_patients": 1, "active_patients": 1}
