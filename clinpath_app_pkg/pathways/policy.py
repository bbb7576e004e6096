# clinpath_app_pkg/pathways/policy.py
"""
Static policy for the clinical pathways the hospital tracks: the length-of-stay
target of each pathway and the number of day columns on its checklist.
"""
from enum import Enum


class PathwayType(str, Enum):
    SECTIO_CAESARIA = "Sectio Caesaria"
    PNEUMONIA = "Pneumonia"
    STROKE_HEMORAGIK = "Stroke Hemoragik"
    STROKE_NON_HEMORAGIK = "Stroke Non Hemoragik"
    DENGUE_FEVER = "Dengue Fever"

    @classmethod
    def values(cls):
        return [member.value for member in cls]

    @classmethod
    def is_valid(cls, value):
        return _as_label(value) in cls.values()


DEFAULT_TARGET_LOS = 2
DEFAULT_DAY_SLOTS = 6
MAX_DAY_SLOTS = 6

TARGET_LOS_DAYS = {
    PathwayType.SECTIO_CAESARIA.value: 2,
    PathwayType.PNEUMONIA.value: 6,
    PathwayType.STROKE_HEMORAGIK.value: 5,
    PathwayType.STROKE_NON_HEMORAGIK.value: 5,
    PathwayType.DENGUE_FEVER.value: 3,
}

CHECKLIST_DAY_SLOTS = {
    PathwayType.SECTIO_CAESARIA.value: 4,
    PathwayType.PNEUMONIA.value: 6,
    PathwayType.STROKE_HEMORAGIK.value: 6,
    PathwayType.STROKE_NON_HEMORAGIK.value: 6,
    PathwayType.DENGUE_FEVER.value: 4,
}


def _as_label(pathway_type):
    if isinstance(pathway_type, PathwayType):
        return pathway_type.value
    return pathway_type


def target_los(pathway_type) -> int:
    """Length-of-stay target in days. Unknown labels fall back to the default target."""
    return TARGET_LOS_DAYS.get(_as_label(pathway_type), DEFAULT_TARGET_LOS)


def day_slots(pathway_type) -> int:
    """Number of day columns on the pathway's checklist template."""
    return CHECKLIST_DAY_SLOTS.get(_as_label(pathway_type), DEFAULT_DAY_SLOTS)
