"""Tests for the pathway policy table (LOS targets and checklist day columns)."""

import pytest

from clinpath_app_pkg.pathways.policy import PathwayType, target_los, day_slots, DEFAULT_TARGET_LOS


class TestTargetLos:

    @pytest.mark.parametrize("pathway_type, expected", [
        ("Sectio Caesaria", 2),
        ("Pneumonia", 6),
        ("Stroke Hemoragik", 5),
        ("Stroke Non Hemoragik", 5),
        ("Dengue Fever", 3),
    ])
    def test_known_pathways(self, pathway_type, expected):
        assert target_los(pathway_type) == expected

    def test_enum_members_are_accepted(self):
        assert target_los(PathwayType.DENGUE_FEVER) == 3

    @pytest.mark.parametrize("label", ["Appendicitis", "pneumonia", "", None])
    def test_unknown_labels_fall_back_to_default(self, label):
        assert target_los(label) == DEFAULT_TARGET_LOS == 2


class TestDaySlots:

    def test_short_pathways_have_four_days(self):
        assert day_slots("Sectio Caesaria") == 4
        assert day_slots("Dengue Fever") == 4

    def test_stroke_and_pneumonia_have_six_days(self):
        assert day_slots("Pneumonia") == 6
        assert day_slots("Stroke Hemoragik") == 6
        assert day_slots("Stroke Non Hemoragik") == 6

    def test_unknown_pathway_gets_full_template(self):
        assert day_slots("Appendicitis") == 6


def test_is_valid_is_case_sensitive():
    assert PathwayType.is_valid("Pneumonia")
    assert not PathwayType.is_valid("PNEUMONIA")
    assert len(PathwayType.values()) == 5
