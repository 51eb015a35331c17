"""Inference engines producing raw detector output.

An engine is any callable taking a BGR pixel buffer and returning the raw
``[1, 4 + C, N]`` output tensor described in :mod:`detection.decoder`.
Two engines ship with the package:

``opencv_dnn``
    Runs an exported YOLOv8 ONNX model through OpenCV's DNN module. The
    frame is stretch-resized to the square model input, converted to RGB
    and scaled to ``[0, 1]`` in planar layout.
``simulation``
    Synthesises output tensors with people drifting across the scene. It
    ignores the pixels and is meant for demos and soak-testing the
    pipeline without a camera or model.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from .detections import COCO_LABELS
from .registry import register_engine


@register_engine("opencv_dnn")
class OpenCVDnnEngine:
    """Run an ONNX detector with ``cv2.dnn``."""

    def __init__(self, model_path: str, input_size: int = 640, prefer_cuda: bool = False) -> None:
        path = Path(model_path)
        if not path.exists():
            raise FileNotFoundError(f"Detector weights not found: {model_path}")
        self.model_path = str(path)
        self.input_size = input_size
        self.net = cv2.dnn.readNetFromONNX(self.model_path)
        if prefer_cuda:
            self.net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            self.net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """Return the ``[1, 3, size, size]`` float blob for ``frame``."""
        return cv2.dnn.blobFromImage(
            frame,
            scalefactor=1.0 / 255.0,
            size=(self.input_size, self.input_size),
            swapRB=True,
            crop=False,
        )

    def __call__(self, frame: np.ndarray) -> np.ndarray:
        self.net.setInput(self.preprocess(frame))
        return self.net.forward()


@register_engine("simulation")
class SimulatedEngine:
    """Generate plausible detector output for a crowd walking around.

    Parameters
    ----------
    num_people : int, default 20
        Number of simulated people.
    num_anchors : int, default 8400
        Anchor slots per output tensor (8400 for a 640 px YOLOv8 head).
    seed : int, optional
        Seed for the random generator; fixes the whole sequence of frames.
    speed : float, default 4.0
        Typical per-tick displacement in model pixels.
    duplicate_score : float, default 0.85
        Score of the shifted duplicate box emitted for every person, so the
        suppressor has overlaps to remove. Set to 0 to disable.
    carry_probability : float, default 0.2
        Chance that a person carries a backpack.
    """

    BACKPACK = COCO_LABELS.index("backpack")

    def __init__(
        self,
        num_people: int = 20,
        num_anchors: int = 8400,
        seed: Optional[int] = None,
        speed: float = 4.0,
        duplicate_score: float = 0.85,
        carry_probability: float = 0.2,
        input_size: int = 640,
    ) -> None:
        if num_anchors < 3 * num_people:
            raise ValueError(f"num_anchors={num_anchors} too small for {num_people} simulated people")
        self.num_people = num_people
        self.num_anchors = num_anchors
        self.input_size = float(input_size)
        self.duplicate_score = duplicate_score
        self.rng = np.random.default_rng(seed)

        margin = 60.0
        self.positions = self.rng.uniform(margin, self.input_size - margin, size=(num_people, 2))
        heading = self.rng.uniform(-np.pi, np.pi, size=num_people)
        self.velocities = np.stack([np.cos(heading), np.sin(heading)], axis=1) * speed
        self.sizes = np.stack(
            [self.rng.uniform(25.0, 45.0, num_people), self.rng.uniform(70.0, 120.0, num_people)], axis=1
        )
        self.carrying = self.rng.random(num_people) < carry_probability

    def _step(self) -> None:
        self.positions += self.velocities + self.rng.normal(0.0, 0.5, size=self.positions.shape)
        # Bounce off the frame edges
        low = self.positions < 0.0
        high = self.positions > self.input_size
        self.velocities[low | high] *= -1.0
        np.clip(self.positions, 0.0, self.input_size, out=self.positions)

    def __call__(self, frame: Optional[np.ndarray] = None) -> np.ndarray:
        self._step()
        output = np.zeros((1, 4 + len(COCO_LABELS), self.num_anchors), dtype=np.float32)
        slots = self.rng.permutation(self.num_anchors)
        slot = 0
        for i in range(self.num_people):
            (cx, cy), (w, h) = self.positions[i], self.sizes[i]
            output[0, :4, slots[slot]] = (cx, cy, w, h)
            output[0, 4, slots[slot]] = self.rng.uniform(0.88, 0.95)
            slot += 1
            if self.duplicate_score > 0:
                output[0, :4, slots[slot]] = (cx + 2.0, cy + 1.0, w, h)
                output[0, 4, slots[slot]] = self.duplicate_score
                slot += 1
            if self.carrying[i]:
                output[0, :4, slots[slot]] = (cx, cy - h * 0.15, w * 0.6, h * 0.3)
                output[0, 4 + self.BACKPACK, slots[slot]] = 0.7
                slot += 1
        return output
