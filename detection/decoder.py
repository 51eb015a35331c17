"""Decoding of raw detector output into safety-relevant detections.

The detector returns a YOLOv8 style tensor of shape ``[1, 4 + C, N]``: for
each of the ``N`` anchors, rows 0-3 hold the box centre and size in the
model's input space (640 x 640) and the remaining ``C`` rows hold per-class
scores. The decoder keeps anchors whose best class clears the confidence
floor and belongs to the allow-list, and rescales their boxes to the
0-1000 output space.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .detections import COCO_LABELS, SAFETY_RELEVANT_LABELS, Detection

OUTPUT_SPACE = 1000.0


class DecodeError(ValueError):
    """Raised when the raw output does not match the expected layout."""


class DecodeStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"


@dataclass(frozen=True)
class DecodeResult:
    """Candidates for one frame plus a flag for the no-detection condition."""

    candidates: List[Detection] = field(default_factory=list)
    status: DecodeStatus = DecodeStatus.EMPTY

    @property
    def is_empty(self) -> bool:
        return self.status is DecodeStatus.EMPTY


class DetectionDecoder:
    """Convert raw anchor arrays into candidate detections.

    Parameters
    ----------
    confidence_floor : float, default 0.4
        Anchors whose best class score is not strictly above this value are
        discarded.
    allowed_labels : iterable of str, optional
        Labels kept after decoding. Defaults to the safety-relevant set.
    class_labels : sequence of str, optional
        Vocabulary indexed by class row. Defaults to the 80 COCO classes.
    input_size : int, default 640
        Side length of the square model input space.
    """

    def __init__(
        self,
        confidence_floor: float = 0.4,
        allowed_labels: Optional[Iterable[str]] = None,
        class_labels: Optional[Sequence[str]] = None,
        input_size: int = 640,
    ) -> None:
        self.confidence_floor = confidence_floor
        self.allowed_labels = frozenset(allowed_labels) if allowed_labels is not None else SAFETY_RELEVANT_LABELS
        self.class_labels = tuple(class_labels) if class_labels is not None else COCO_LABELS
        self.input_size = input_size
        self.scale = OUTPUT_SPACE / float(input_size)
        # Class rows that may survive the allow-list filter
        self._allowed_mask = np.array([label in self.allowed_labels for label in self.class_labels], dtype=bool)

    def _as_matrix(self, output, dims: Optional[Sequence[int]]) -> np.ndarray:
        if output is None:
            raise DecodeError("No output tensor supplied")
        try:
            data = np.asarray(output, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"Output is not a numeric array ({exc})") from exc
        if dims is not None:
            dims = tuple(int(d) for d in dims)
            if int(np.prod(dims)) != data.size:
                raise DecodeError(f"Output size {data.size} does not match dims {dims}")
            data = data.reshape(dims)
        if data.ndim == 3:
            if data.shape[0] != 1:
                raise DecodeError(f"Expected batch size 1, got {data.shape[0]}")
            data = data[0]
        if data.ndim != 2:
            raise DecodeError(f"Expected a [1, 4 + C, N] output, got shape {data.shape}")
        num_classes = data.shape[0] - 4
        if num_classes <= 0:
            raise DecodeError(f"Output has {data.shape[0]} rows, need at least 5")
        if num_classes != len(self.class_labels):
            raise DecodeError(
                f"Output carries {num_classes} classes but the vocabulary has {len(self.class_labels)}"
            )
        return data

    def decode(self, output, dims: Optional[Sequence[int]] = None) -> DecodeResult:
        """Decode one frame of raw detector output.

        Parameters
        ----------
        output : array-like
            Either an array already shaped ``[1, 4 + C, N]`` / ``[4 + C, N]``
            or flat data accompanied by ``dims``.
        dims : sequence of int, optional
            Tensor dimensions for flat data.

        Returns
        -------
        DecodeResult
            Candidates in anchor order. ``status`` is ``EMPTY`` when nothing
            survived filtering.

        Raises
        ------
        DecodeError
            If the output layout is malformed.
        """
        data = self._as_matrix(output, dims)
        num_anchors = data.shape[1]
        if num_anchors == 0:
            return DecodeResult([], DecodeStatus.EMPTY)

        # NaN never wins the class argmax
        scores = np.where(np.isnan(data[4:]), -np.inf, data[4:])
        class_idx = np.argmax(scores, axis=0)
        best = scores[class_idx, np.arange(num_anchors)]
        geometry = data[:4]

        keep = (best > self.confidence_floor) & self._allowed_mask[class_idx]
        keep &= np.all(np.isfinite(geometry), axis=0)

        candidates: List[Detection] = []
        for i in np.flatnonzero(keep):
            xc, yc, w, h = (float(v) for v in geometry[:, i])
            y1, y2 = (yc - h / 2.0) * self.scale, (yc + h / 2.0) * self.scale
            x1, x2 = (xc - w / 2.0) * self.scale, (xc + w / 2.0) * self.scale
            candidates.append(
                Detection(
                    id=f"obj-{i}",
                    box=(min(y1, y2), min(x1, x2), max(y1, y2), max(x1, x2)),
                    label=self.class_labels[class_idx[i]],
                    confidence=float(best[i]),
                )
            )
        status = DecodeStatus.OK if candidates else DecodeStatus.EMPTY
        return DecodeResult(candidates, status)


def seed_detections(count: int = 5) -> List[Detection]:
    """Return the fixed set of person detections used to re-seed empty frames."""
    return [
        Detection(
            id=f"sim-{i}",
            box=(150.0 + i * 20, 100.0 + i * 120, 450.0 + i * 20, 280.0 + i * 120),
            label="person",
            confidence=0.95,
        )
        for i in range(count)
    ]
