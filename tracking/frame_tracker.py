"""Frame-to-frame motion estimation for detected people.

The tracker associates each person in the current frame with the nearest
person of the previous frame and derives displacement vectors from the
matches. Association is greedy and non-exclusive: several current people
may match the same previous person, and there is no identity kept beyond
one frame. The previous frame lives in a :class:`TrackerState` owned by
the caller, so each video source can keep its own.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy.spatial.distance import cdist

from detection.detections import Detection


@dataclass
class TrackerState:
    """Person detections of the most recently tracked frame."""

    previous: Tuple[Detection, ...] = ()

    def reset(self) -> None:
        self.previous = ()

    def __len__(self) -> int:
        return len(self.previous)


@dataclass(frozen=True)
class TrackedVector:
    dx: float
    dy: float

    @property
    def magnitude(self) -> float:
        return math.hypot(self.dx, self.dy)

    @property
    def angle(self) -> float:
        return math.atan2(self.dy, self.dx)


@dataclass(frozen=True)
class MotionSummary:
    """Everything the aggregator needs to know about movement in one frame."""

    vectors: Tuple[TrackedVector, ...] = ()
    average_displacement: float = 0.0
    agitation_level: float = 0.0
    counter_flow_count: int = 0
    average_flow_direction: float = 0.0
    unmatched_count: int = 0

    @property
    def matched_count(self) -> int:
        return len(self.vectors)


def _centroids(people: Sequence[Detection]) -> np.ndarray:
    if not people:
        return np.empty((0, 2), dtype=float)
    return np.array([det.centroid for det in people], dtype=float)


class FrameTracker:
    """Greedy nearest-neighbour matcher between consecutive frames.

    Parameters
    ----------
    match_distance : float, default 100
        Matches at or beyond this centroid distance (0-1000 units) are
        rejected and the person is treated as a new entrant.
    agitation_scale : float, default 20
        Mean displacement that maps to an agitation level of 1.
    counter_flow_factor : float, default 0.66
        A vector counts as counter-flow when its angle differs from the mean
        flow angle by more than ``counter_flow_factor * pi`` radians.
    min_flow_vectors : int, default 3
        Minimum number of vectors before a mean flow is computed.
    wrap_angles : bool, default False
        Compare angles on the circle (shortest difference). When False the
        raw ``atan2`` difference is used, so vectors straddling the +-pi
        seam count as opposed.
    """

    def __init__(
        self,
        match_distance: float = 100.0,
        agitation_scale: float = 20.0,
        counter_flow_factor: float = 0.66,
        min_flow_vectors: int = 3,
        wrap_angles: bool = False,
    ) -> None:
        self.match_distance = match_distance
        self.agitation_scale = agitation_scale
        self.counter_flow_threshold = math.pi * counter_flow_factor
        self.min_flow_vectors = min_flow_vectors
        self.wrap_angles = wrap_angles

    def match(
        self, previous: Sequence[Detection], current: Sequence[Detection]
    ) -> Tuple[List[TrackedVector], List[float], int]:
        """Match current people against previous ones.

        Returns the displacement vectors, their distances, and the number of
        current people left unmatched. On equal distances the earliest
        previous detection wins.
        """
        if not current:
            return [], [], 0
        if not previous:
            return [], [], len(current)
        cur = _centroids(current)
        prev = _centroids(previous)
        distances = cdist(cur, prev)
        nearest = np.argmin(distances, axis=1)

        vectors: List[TrackedVector] = []
        matched: List[float] = []
        for i, j in enumerate(nearest):
            dist = float(distances[i, j])
            if dist < self.match_distance:
                vectors.append(TrackedVector(float(cur[i, 0] - prev[j, 0]), float(cur[i, 1] - prev[j, 1])))
                matched.append(dist)
        return vectors, matched, len(current) - len(vectors)

    def _angle_difference(self, angle: float, reference: float) -> float:
        diff = abs(angle - reference)
        if self.wrap_angles and diff > math.pi:
            diff = 2.0 * math.pi - diff
        return diff

    def summarize(self, vectors: Sequence[TrackedVector], distances: Sequence[float], unmatched: int = 0) -> MotionSummary:
        average = sum(distances) / len(distances) if distances else 0.0
        agitation = min(1.0, average / self.agitation_scale)

        counter_flow = 0
        flow_direction = 0.0
        if len(vectors) >= self.min_flow_vectors:
            mean_dx = sum(v.dx for v in vectors) / len(vectors)
            mean_dy = sum(v.dy for v in vectors) / len(vectors)
            mean_angle = math.atan2(mean_dy, mean_dx)
            counter_flow = sum(
                1 for v in vectors if self._angle_difference(v.angle, mean_angle) > self.counter_flow_threshold
            )
            flow_direction = math.degrees(mean_angle)

        return MotionSummary(
            vectors=tuple(vectors),
            average_displacement=average,
            agitation_level=agitation,
            counter_flow_count=counter_flow,
            average_flow_direction=flow_direction,
            unmatched_count=unmatched,
        )

    def update(self, state: TrackerState, detections: Sequence[Detection]) -> MotionSummary:
        """Track one frame and advance ``state`` to it.

        Only person detections take part. After matching, the state holds
        exactly this frame's people.
        """
        people = tuple(det for det in detections if det.is_person)
        vectors, distances, unmatched = self.match(state.previous, people)
        state.previous = people
        return self.summarize(vectors, distances, unmatched)
