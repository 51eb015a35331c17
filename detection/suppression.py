"""Greedy non-maximum suppression for decoded detections."""

from __future__ import annotations

from typing import List, Sequence

from .detections import Box, Detection


def iou(a: Box, b: Box) -> float:
    """Compute intersection over union between two ``(ymin, xmin, ymax, xmax)`` boxes."""
    if tuple(a) == tuple(b):
        return 1.0
    ay1, ax1, ay2, ax2 = a
    by1, bx1, by2, bx2 = b
    inter_x1 = max(ax1, bx1)
    inter_y1 = max(ay1, by1)
    inter_x2 = min(ax2, bx2)
    inter_y2 = min(ay2, by2)
    if inter_x2 <= inter_x1 or inter_y2 <= inter_y1:
        return 0.0
    inter_area = (inter_x2 - inter_x1) * (inter_y2 - inter_y1)
    area_a = (ax2 - ax1) * (ay2 - ay1)
    area_b = (bx2 - bx1) * (by2 - by1)
    union = area_a + area_b - inter_area
    return inter_area / union if union > 0 else 0.0


class Suppressor:
    """Remove overlapping duplicates, keeping the most confident box.

    Candidates are ranked by confidence with a stable sort, so equal scores
    keep their incoming (anchor) order and the output is reproducible.
    """

    def __init__(self, iou_threshold: float = 0.5, max_detections: int = 50) -> None:
        self.iou_threshold = iou_threshold
        self.max_detections = max_detections

    def suppress(self, candidates: Sequence[Detection]) -> List[Detection]:
        remaining = sorted(candidates, key=lambda det: -det.confidence)
        kept: List[Detection] = []
        while remaining and len(kept) < self.max_detections:
            current = remaining.pop(0)
            kept.append(current)
            remaining = [det for det in remaining if iou(current.box, det.box) <= self.iou_threshold]
        return kept
