"""Analytics package.

This package turns tracked detections into crowd-safety telemetry:
restricted-zone occupancy, density, panic and stampede estimates, the
escalated risk level, and a bounded history of recent snapshots.
"""

from .crowd_metrics import CrowdMetrics, MetricsAggregator
from .history import MetricsHistory
from .restricted_zone import RestrictedZone
from .risk import RiskClassifier, RiskLevel, baseline_risk

__all__ = [
    "CrowdMetrics",
    "MetricsAggregator",
    "MetricsHistory",
    "RestrictedZone",
    "RiskClassifier",
    "RiskLevel",
    "baseline_risk",
]
