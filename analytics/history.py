"""Bounded history of recent crowd metrics.

Dashboards chart the last few seconds of telemetry. `MetricsHistory`
keeps the most recent snapshots per source in a ring buffer and provides
a couple of summary helpers.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Optional

from .crowd_metrics import CrowdMetrics
from .risk import RiskLevel


class MetricsHistory:
    """Ring buffer of `CrowdMetrics` snapshots."""

    def __init__(self, maxlen: int = 100) -> None:
        if maxlen <= 0:
            raise ValueError(f"maxlen must be positive, got {maxlen}")
        self._items: Deque[CrowdMetrics] = deque(maxlen=maxlen)

    def record(self, metrics: CrowdMetrics, live: bool = True) -> bool:
        """Append a snapshot when people were seen or the source is live."""
        if metrics.people_count > 0 or live:
            self._items.append(metrics)
            return True
        return False

    def latest(self) -> Optional[CrowdMetrics]:
        return self._items[-1] if self._items else None

    def snapshots(self) -> List[CrowdMetrics]:
        return list(self._items)

    def peak_people(self) -> int:
        return max((m.people_count for m in self._items), default=0)

    def risk_counts(self) -> Dict[str, int]:
        counts = {level.value: 0 for level in RiskLevel}
        for m in self._items:
            counts[m.risk_level.value] += 1
        return counts

    def __len__(self) -> int:
        return len(self._items)
