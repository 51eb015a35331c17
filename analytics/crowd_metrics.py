"""Crowd metrics aggregation.

`MetricsAggregator.aggregate` turns one frame's suppressed detections and
the tracker's motion summary into a `CrowdMetrics` snapshot: head count,
object histogram, restricted-zone violations, density, panic index,
stampede probability and the escalated risk level.

The numeric constants (density divisor of 35, the 0.7/0.3 panic blend, the
2.5 and 2.2 density breakpoints) are empirical proxies rather than
physical units and must be kept as they are for the dashboards to agree.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from detection.detections import Detection
from tracking.frame_tracker import MotionSummary

from .restricted_zone import RestrictedZone
from .risk import RiskClassifier, RiskLevel


@dataclass(frozen=True)
class CrowdMetrics:
    """Published per-frame crowd telemetry."""

    people_count: int = 0
    density: float = 0.0
    flow_rate: int = 0
    counter_flow_count: int = 0
    avg_velocity: float = 0.0
    congestion_zone_count: int = 0
    stampede_probability: float = 0.0
    risk_level: RiskLevel = RiskLevel.LOW
    agitation_level: float = 0.0
    panic_index: float = 0.0
    object_counts: Mapping[str, int] = field(default_factory=dict)
    audio_level: float = 0.0
    zone_violations: int = 0
    average_flow_direction: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "object_counts", MappingProxyType(dict(self.object_counts)))

    def to_dict(self) -> Dict[str, Any]:
        """Serialise with the camelCase keys used by dashboard consumers."""
        return {
            "peopleCount": self.people_count,
            "density": self.density,
            "flowRate": self.flow_rate,
            "counterFlowCount": self.counter_flow_count,
            "avgVelocity": self.avg_velocity,
            "congestionZoneCount": self.congestion_zone_count,
            "stampedeProbability": self.stampede_probability,
            "riskLevel": self.risk_level.value,
            "agitationLevel": self.agitation_level,
            "panicIndex": self.panic_index,
            "objectCounts": dict(self.object_counts),
            "audioLevel": self.audio_level,
            "zoneViolations": self.zone_violations,
            "averageFlowDirection": self.average_flow_direction,
        }


def panic_index(density: float, agitation_level: float) -> float:
    if density <= 1:
        return 0.0
    return 0.7 * agitation_level + 0.3 * (min(density, 4.0) / 4.0)


def stampede_probability(density: float) -> float:
    if density > 2.5:
        return min(0.95, density / 4.0)
    return density / 12.0


def audio_proxy(density: float, agitation_level: float) -> float:
    """Estimate crowd noise (0-100) when no microphone level is available."""
    return min(100.0, density * 10.0 + agitation_level * 80.0)


class MetricsAggregator:
    """Combine detections and motion into a `CrowdMetrics` record.

    Parameters
    ----------
    zone : RestrictedZone, optional
        No-go area; defaults to the top-right box x in [0.6, 1], y in [0, 0.3].
    classifier : RiskClassifier, optional
        Risk classifier with its escalation rules.
    density_divisor : float, default 35
        People count that corresponds to a density of 1.
    rng : numpy.random.Generator, optional
        Source for the flow-rate jitter. Seed it for reproducible output.
    """

    def __init__(
        self,
        zone: Optional[RestrictedZone] = None,
        classifier: Optional[RiskClassifier] = None,
        density_divisor: float = 35.0,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if density_divisor <= 0:
            raise ValueError(f"density_divisor must be positive, got {density_divisor}")
        self.zone = zone or RestrictedZone()
        self.classifier = classifier or RiskClassifier()
        self.density_divisor = density_divisor
        self.rng = rng or np.random.default_rng()

    def aggregate(
        self,
        detections: Sequence[Detection],
        motion: MotionSummary,
        frame_width: float,
        frame_height: float,
        audio_level: Optional[float] = None,
    ) -> CrowdMetrics:
        """Build the metrics snapshot for one frame.

        Parameters
        ----------
        detections : sequence of Detection
            Post-suppression detections of the frame.
        motion : MotionSummary
            Output of `FrameTracker.update` for the same frame.
        frame_width, frame_height : float
            Size of the source frame, used for the zone test.
        audio_level : float, optional
            Externally measured sound level (0-100). Estimated from density
            and agitation when omitted.
        """
        people = [det for det in detections if det.is_person]
        people_count = len(people)
        object_counts = dict(Counter(det.label for det in detections))
        zone_violations = self.zone.count_violations(people, frame_width, frame_height)

        density = people_count / self.density_divisor
        agitation = motion.agitation_level
        panic = panic_index(density, agitation)
        probability = stampede_probability(density)
        risk = self.classifier.classify(
            density,
            probability,
            panic_index=panic,
            zone_violations=zone_violations,
            counter_flow_count=motion.counter_flow_count,
            object_counts=object_counts,
        )

        if audio_level is None:
            audio = audio_proxy(density, agitation)
        else:
            audio = float(min(100.0, max(0.0, audio_level)))

        return CrowdMetrics(
            people_count=people_count,
            density=density,
            flow_rate=80 + int(self.rng.integers(0, 40)),
            counter_flow_count=motion.counter_flow_count,
            avg_velocity=agitation * 2.0,
            congestion_zone_count=2 if density > 2.2 else 0,
            stampede_probability=probability,
            risk_level=risk,
            agitation_level=agitation,
            panic_index=panic,
            object_counts=object_counts,
            audio_level=audio,
            zone_violations=zone_violations,
            average_flow_direction=motion.average_flow_direction,
        )
