from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
import pytest

from detection.detections import COCO_LABELS, Detection

# (class label, score, (centre_x, centre_y, width, height)) in 640 px model space
Anchor = Tuple[str, float, Tuple[float, float, float, float]]


def build_output(anchors: Sequence[Anchor], num_anchors: int | None = None) -> np.ndarray:
    """Lay anchors out as a [1, 4 + C, N] detector output tensor."""
    n = num_anchors if num_anchors is not None else len(anchors)
    output = np.zeros((1, 4 + len(COCO_LABELS), n), dtype=np.float64)
    for i, (label, score, geometry) in enumerate(anchors):
        output[0, :4, i] = geometry
        output[0, 4 + COCO_LABELS.index(label), i] = score
    return output


def person_at(cx: float, cy: float, size: float = 100.0, det_id: str = "p", label: str = "person") -> Detection:
    """Detection whose centroid is (cx, cy) in the 0-1000 space."""
    half = size / 2.0
    return Detection(det_id, (cy - half, cx - half, cy + half, cx + half), label, 0.9)


@pytest.fixture
def make_output():
    return build_output


@pytest.fixture
def make_person():
    return person_at
