"""Risk level classification.

Risk is computed in two passes. A baseline level comes from a monotone
rule over crowd density and stampede probability; escalation rules then
raise it when specific hazards are present. Escalation never lowers a
level.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from rules import RuleEngine


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2, RiskLevel.CRITICAL: 3}

DEFAULT_WEAPON_LABELS = ("knife", "baseball bat")

DEFAULT_ESCALATION_RULES: List[Dict[str, Any]] = [
    {"type": "panic_index", "threshold": 0.6, "level": "CRITICAL"},
    {"type": "zone_violation", "threshold": 3, "level": "CRITICAL"},
    {"type": "counter_flow", "threshold": 3, "level": "CRITICAL"},
    {"type": "weapon_present", "level": "CRITICAL"},
]


def baseline_risk(density: float, stampede_probability: float) -> RiskLevel:
    if density > 4 or stampede_probability > 0.8:
        return RiskLevel.CRITICAL
    if density > 2.5 or stampede_probability > 0.5:
        return RiskLevel.HIGH
    if density > 1.5:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def escalate(current: RiskLevel, candidate: RiskLevel) -> RiskLevel:
    """Return the more severe of two levels."""
    return candidate if candidate.severity > current.severity else current


def _panic_index(context: Dict[str, Any], rule: Dict[str, Any]) -> bool:
    return context.get("panic_index", 0.0) > rule.get("threshold", 0.6)


def _zone_violation(context: Dict[str, Any], rule: Dict[str, Any]) -> bool:
    return context.get("zone_violations", 0) > rule.get("threshold", 3)


def _counter_flow(context: Dict[str, Any], rule: Dict[str, Any]) -> bool:
    return context.get("counter_flow_count", 0) > rule.get("threshold", 3)


def _weapon_present(context: Dict[str, Any], rule: Dict[str, Any]) -> bool:
    counts = context.get("object_counts", {})
    labels = rule.get("labels") or context.get("weapon_labels", DEFAULT_WEAPON_LABELS)
    return any(counts.get(label, 0) > 0 for label in labels)


class RiskClassifier:
    """Baseline classification followed by escalation-only overrides.

    Parameters
    ----------
    rules : list of dict, optional
        Escalation rules; defaults to the four CRITICAL overrides (panic
        index, zone violations, counter-flow, weapons).
    weapon_labels : sequence of str, optional
        Labels treated as weapons by ``weapon_present`` rules that do not
        list their own labels.
    """

    def __init__(
        self,
        rules: Optional[List[Dict[str, Any]]] = None,
        weapon_labels: Optional[List[str]] = None,
    ) -> None:
        self.weapon_labels = tuple(weapon_labels) if weapon_labels is not None else DEFAULT_WEAPON_LABELS
        self.engine = RuleEngine(DEFAULT_ESCALATION_RULES if rules is None else rules)
        self.engine.register_handler("panic_index", _panic_index)
        self.engine.register_handler("zone_violation", _zone_violation)
        self.engine.register_handler("counter_flow", _counter_flow)
        self.engine.register_handler("weapon_present", _weapon_present)
        for rule in self.engine.rules:
            if rule.get("type") not in self.engine.custom_handlers:
                raise ValueError(f"Unknown escalation rule type: {rule.get('type')!r}")
            RiskLevel(rule.get("level", "CRITICAL"))

    def classify(
        self,
        density: float,
        stampede_probability: float,
        panic_index: float = 0.0,
        zone_violations: int = 0,
        counter_flow_count: int = 0,
        object_counts: Optional[Dict[str, int]] = None,
    ) -> RiskLevel:
        level = baseline_risk(density, stampede_probability)
        context = {
            "density": density,
            "stampede_probability": stampede_probability,
            "panic_index": panic_index,
            "zone_violations": zone_violations,
            "counter_flow_count": counter_flow_count,
            "object_counts": object_counts or {},
            "weapon_labels": self.weapon_labels,
        }
        for event in self.engine.evaluate(context):
            level = escalate(level, RiskLevel(event["rule"].get("level", "CRITICAL")))
        return level
