"""Detection value objects and the label vocabulary.

Boxes live in a normalized 0-1000 space on both axes and are ordered
``(ymin, xmin, ymax, xmax)``, matching what the dashboard and advisory
consumers expect.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

Box = Tuple[float, float, float, float]

COCO_LABELS: Tuple[str, ...] = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat",
    "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack",
    "umbrella", "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball",
    "kite", "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket",
    "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair",
    "couch", "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse",
    "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "book", "clock", "vase", "scissors", "teddy bear", "hair drier",
    "toothbrush",
)

# Objects relevant to crowd safety; everything else is ignored at decode time.
SAFETY_RELEVANT_LABELS = frozenset(
    {"person", "backpack", "handbag", "suitcase", "cell phone", "baseball bat", "knife", "bottle"}
)

PERSON_LABEL = "person"


@dataclass(frozen=True)
class Detection:
    """A single detection for one frame."""

    id: str
    box: Box
    label: str
    confidence: float

    def __post_init__(self) -> None:
        ymin, xmin, ymax, xmax = self.box
        if ymin > ymax or xmin > xmax:
            raise ValueError(f"Invalid box ordering for {self.id}: {self.box}")

    @property
    def centroid(self) -> Tuple[float, float]:
        """Return the box centre as ``(cx, cy)``."""
        ymin, xmin, ymax, xmax = self.box
        return ((xmin + xmax) / 2.0, (ymin + ymax) / 2.0)

    @property
    def is_person(self) -> bool:
        return self.label == PERSON_LABEL

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "box_2d": list(self.box),
            "label": self.label,
            "confidence": self.confidence,
        }
