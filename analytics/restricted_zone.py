"""Restricted zone occupancy.

This module defines a `RestrictedZone` that counts people whose box
centroid falls inside a rectangular area of the frame. The zone is given
in normalized 0-1 coordinates so it does not depend on the frame size.
"""

from __future__ import annotations

from typing import Iterable, Tuple

from detection.detections import Detection


class RestrictedZone:
    """Rectangular no-go area in normalized coordinates."""

    def __init__(self, x: float = 0.6, y: float = 0.0, w: float = 0.4, h: float = 0.3) -> None:
        """
        Parameters
        ----------
        x, y : float
            Top-left corner of the zone, as fractions of frame width/height.
        w, h : float
            Zone width and height as fractions of the frame.
        """
        if w < 0 or h < 0:
            raise ValueError(f"Zone size must be non-negative, got w={w}, h={h}")
        self.x = x
        self.y = y
        self.w = w
        self.h = h

    @classmethod
    def from_dict(cls, cfg: dict) -> "RestrictedZone":
        return cls(cfg.get("x", 0.6), cfg.get("y", 0.0), cfg.get("w", 0.4), cfg.get("h", 0.3))

    def contains(self, point: Tuple[float, float]) -> bool:
        """Return True if a normalized ``(nx, ny)`` point lies in the zone (bounds inclusive)."""
        nx, ny = point
        return self.x <= nx <= self.x + self.w and self.y <= ny <= self.y + self.h

    def count_violations(self, people: Iterable[Detection], frame_width: float, frame_height: float) -> int:
        """Count people whose centroid lies inside the zone.

        Centroids are divided by the frame width and height before the
        membership test.
        """
        if frame_width <= 0 or frame_height <= 0:
            raise ValueError(f"Frame size must be positive, got {frame_width}x{frame_height}")
        count = 0
        for det in people:
            cx, cy = det.centroid
            if self.contains((cx / frame_width, cy / frame_height)):
                count += 1
        return count
