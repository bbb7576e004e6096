"""Tests for checklist completion aggregation and summary generation."""

from sqlalchemy.exc import OperationalError

from clinpath_app_pkg.models import ChecklistSummary, MonthlySummary
from clinpath_app_pkg.rollup.services import MonthWindow
from clinpath_app_pkg.summaries import services as summaries
from clinpath_app_pkg.summaries.services import (
    aggregate_checklist, persist_checklist_summary, generate_summary_for_month, get_checklist_summary,
)

MARCH = MonthWindow(3, 2024)


def checklist(*rows):
    return [{'item_text': text, 'days': days} for text, days in rows]


def seed(make_encounter):
    make_encounter(record_number='RM-1', checklist=checklist(
        ('Foto thorax', [True, False, False, False, False, False]),
        ('Antibiotik empiris', [False, False, False, False, False, False]),
    ))
    make_encounter(record_number='RM-2', checklist=checklist(
        ('Foto thorax', [False, True]),
        ('Antibiotik empiris', [True, True, True]),
    ))
    make_encounter(record_number='RM-3', pathway_type='Dengue Fever', checklist=checklist(
        ('Cek trombosit', [True, True, True, True]),
    ))
    make_encounter(record_number='RM-4', admission_date='2024-04-01')


class TestAggregate:

    def test_any_true_slot_counts_as_completed(self, make_encounter):
        seed(make_encounter)
        rows = aggregate_checklist(MARCH)
        assert [r['pathway_type'] for r in rows] == ['Dengue Fever', 'Pneumonia']

        pneumonia = rows[1]
        assert pneumonia['total_patients'] == 2
        assert pneumonia['total_checklist_items'] == 4
        assert pneumonia['completed_items'] == 3
        assert pneumonia['completion_percentage'] == 75.0
        assert pneumonia['data_detail']['Foto thorax']['completed'] == 2
        assert pneumonia['data_detail']['Antibiotik empiris']['total'] == 2

    def test_encounter_without_items_gives_zero_percentage(self, make_encounter):
        make_encounter(pathway_type='Stroke Hemoragik')
        (row,) = aggregate_checklist(MARCH)
        assert row['total_checklist_items'] == 0
        assert row['completion_percentage'] == 0.0
        assert row['total_patients'] == 1

    def test_filter_and_empty_window(self, make_encounter):
        seed(make_encounter)
        assert [r['pathway_type'] for r in aggregate_checklist(MARCH, 'Dengue Fever')] == ['Dengue Fever']
        assert aggregate_checklist(MonthWindow(1, 2024)) == []


class TestPersist:

    def test_rerun_replaces_instead_of_summing(self, make_encounter):
        seed(make_encounter)
        for row in aggregate_checklist(MARCH):
            persist_checklist_summary(row)

        make_encounter(record_number='RM-5', checklist=checklist(('Foto thorax', [False])))
        for row in aggregate_checklist(MARCH):
            persist_checklist_summary(row)

        stored = ChecklistSummary.query.filter_by(month=3, year=2024, pathway_type='Pneumonia').all()
        assert len(stored) == 1
        assert stored[0].total_patients == 3
        assert stored[0].total_checklist_items == 5
        assert stored[0].completed_items == 3

    def test_get_checklist_summary_orders_by_type(self, make_encounter):
        seed(make_encounter)
        generate_summary_for_month(MARCH)
        assert [s.pathway_type for s in get_checklist_summary(MARCH)] == ['Dengue Fever', 'Pneumonia']
        assert [s.pathway_type for s in get_checklist_summary(MARCH, 'Pneumonia')] == ['Pneumonia']


class TestGenerate:

    def test_generate_twice_is_idempotent(self, make_encounter):
        seed(make_encounter)
        first = generate_summary_for_month(MARCH)
        second = generate_summary_for_month(MARCH)

        assert first['succeeded'] == second['succeeded'] == ['Dengue Fever', 'Pneumonia']
        assert second['failed'] == []
        assert ChecklistSummary.query.count() == 2
        assert MonthlySummary.query.count() == 2
        pneumonia = MonthlySummary.query.filter_by(pathway_type='Pneumonia').one()
        assert pneumonia.total_patients == 2

    def test_failure_of_one_type_is_isolated(self, make_encounter, monkeypatch):
        seed(make_encounter)
        real_persist = summaries.persist_checklist_summary

        def flaky_persist(row):
            if row['pathway_type'] == 'Dengue Fever':
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            real_persist(row)

        monkeypatch.setattr(summaries, 'persist_checklist_summary', flaky_persist)
        result = generate_summary_for_month(MARCH)

        assert result['succeeded'] == ['Pneumonia']
        assert [f['pathway_type'] for f in result['failed']] == ['Dengue Fever']
        assert ChecklistSummary.query.filter_by(pathway_type='Pneumonia').count() == 1
        assert ChecklistSummary.query.filter_by(pathway_type='Dengue Fever').count() == 0
        assert result['monthly']['failed'] == []


class TestGenerateEndpoint:

    def test_zero_month_or_year_is_rejected(self, client, auth_headers, make_encounter):
        seed(make_encounter)
        for payload in ({'month': 0, 'year': 2024}, {'month': 3, 'year': 0}):
            response = client.post('/api/summaries/generate', headers=auth_headers(), json=payload)
            assert response.status_code == 400
        assert ChecklistSummary.query.count() == 0
        assert MonthlySummary.query.count() == 0

    def test_generates_requested_month(self, client, auth_headers, make_encounter):
        seed(make_encounter)
        response = client.post('/api/summaries/generate', headers=auth_headers(), json={'month': 3, 'year': 2024})
        assert response.status_code == 200
        assert response.get_json()['result']['succeeded'] == ['Dengue Fever', 'Pneumonia']

    def test_all_monthly_rows_failing_is_a_server_error(self, client, auth_headers, make_encounter, monkeypatch):
        seed(make_encounter)

        def failing_persist(row):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(summaries, 'persist_monthly_summary', failing_persist)
        response = client.post('/api/summaries/generate', headers=auth_headers(), json={'month': 3, 'year': 2024})
        assert response.status_code == 500
        result = response.get_json()['result']
        assert result['succeeded'] == ['Dengue Fever', 'Pneumonia']
        assert [f['pathway_type'] for f in result['monthly']['failed']] == ['Dengue Fever', 'Pneumonia']
