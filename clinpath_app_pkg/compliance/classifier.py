# clinpath_app_pkg/compliance/classifier.py
from dataclasses import dataclass, asdict, replace

from ..models import COMPLIANCE_FIELDS
from ..pathways.policy import target_los

PLACEHOLDER_POLICY = 'placeholder'
CHECKLIST_POLICY = 'checklist'


@dataclass(frozen=True)
class ComplianceFacts:
    """Per-encounter compliance judgments."""
    sesuai_target: bool = False # LOS within the pathway target
    kepatuhan_cp: bool = True
    kepatuhan_penunjang: bool = True # support tasks
    kepatuhan_terapi: bool = True # therapy tasks

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class CompliancePolicy:
    derivation: str = PLACEHOLDER_POLICY
    cp_threshold: float = 80.0
    support_threshold: float = 70.0
    therapy_threshold: float = 75.0

    @classmethod
    def from_config(cls, config):
        derivation = config.get('COMPLIANCE_DERIVATION_POLICY', PLACEHOLDER_POLICY)
        if derivation not in (PLACEHOLDER_POLICY, CHECKLIST_POLICY):
            raise ValueError(f"Unknown COMPLIANCE_DERIVATION_POLICY '{derivation}'.")
        return cls(
            derivation=derivation,
            cp_threshold=float(config.get('CP_COMPLIANCE_THRESHOLD', 80.0)),
            support_threshold=float(config.get('SUPPORT_COMPLIANCE_THRESHOLD', 70.0)),
            therapy_threshold=float(config.get('THERAPY_COMPLIANCE_THRESHOLD', 75.0)),
        )


DEFAULT_POLICY = CompliancePolicy()


def is_within_target(los, pathway_type):
    """An encounter without a LOS (still inpatient) never meets its target."""
    if los is None:
        return False
    return los <= target_los(pathway_type)


def checklist_completion_percentage(checklist_items):
    items = list(checklist_items or [])
    if not items:
        return 0.0
    completed = sum(1 for item in items if item.is_completed)
    return 100.0 * completed / len(items)


def classify(encounter, checklist_items=None, policy=None) -> ComplianceFacts:
    """
    Derive an encounter's compliance facts. Pure: the same encounter and
    checklist always yield the same facts, and unknown pathway types are
    judged against the default LOS target.
    """
    policy = policy or DEFAULT_POLICY
    sesuai_target = is_within_target(encounter.length_of_stay, encounter.pathway_type)

    if policy.derivation == CHECKLIST_POLICY:
        items = list(checklist_items or [])
        if not items:
            return ComplianceFacts(sesuai_target, False, False, False)
        pct = checklist_completion_percentage(items)
        return ComplianceFacts(
            sesuai_target=sesuai_target,
            kepatuhan_cp=pct >= policy.cp_threshold,
            kepatuhan_penunjang=pct >= policy.support_threshold,
            kepatuhan_terapi=pct >= policy.therapy_threshold,
        )

    # TODO: retire the placeholder once the quality committee confirms the checklist thresholds.
    return ComplianceFacts(sesuai_target=sesuai_target)


def effective_facts(derived: ComplianceFacts, overrides=None) -> ComplianceFacts:
    """Overlay operator overrides (a ComplianceRecord or a dict of set fields) on derived facts."""
    if overrides is None:
        return derived
    if not isinstance(overrides, dict):
        overrides = overrides.overrides()
    applied = {field: bool(overrides[field]) for field in COMPLIANCE_FIELDS if overrides.get(field) is not None}
    return replace(derived, **applied)
