"""Fixed-interval scheduling of pipelines.

Each source runs in its own thread and ticks its pipeline at the source's
interval. When a frame overruns its slot, the ticks it covered are dropped
rather than queued, and the pipeline itself skips any tick that arrives
while a frame is still in flight.
"""

from __future__ import annotations

import threading
import time
import warnings
from typing import Callable, Optional

import numpy as np

from .frame_pipeline import CrowdSafetyPipeline, FrameResult

FrameSource = Callable[[], Optional[np.ndarray]]
AudioSource = Callable[[], Optional[float]]
ResultCallback = Callable[[FrameResult], None]


class SourceWorker(threading.Thread):
    """Threaded ticker for a single source."""

    def __init__(
        self,
        pipeline: CrowdSafetyPipeline,
        interval: float,
        frame_source: Optional[FrameSource] = None,
        on_result: Optional[ResultCallback] = None,
        audio_source: Optional[AudioSource] = None,
        max_frames: Optional[int] = None,
    ) -> None:
        super().__init__(daemon=True, name=f"pipeline-{pipeline.source_id}")
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.pipeline = pipeline
        self.interval = interval
        self.frame_source = frame_source or self._blank_frame
        self.on_result = on_result
        self.audio_source = audio_source
        self.max_frames = max_frames
        self.stop_event = threading.Event()
        self.missed_ticks = 0

    def _blank_frame(self) -> np.ndarray:
        return np.zeros((self.pipeline.frame_height, self.pipeline.frame_width, 3), dtype=np.uint8)

    def tick(self) -> Optional[FrameResult]:
        """Grab a frame and run it through the pipeline once."""
        frame = self.frame_source()
        if frame is None:
            return None
        audio = self.audio_source() if self.audio_source is not None else None
        result = self.pipeline.process_frame(frame, audio_level=audio)
        if result is not None and self.on_result is not None:
            self.on_result(result)
        return result

    def run(self) -> None:
        processed = 0
        next_tick = time.monotonic()
        while not self.stop_event.is_set():
            try:
                if self.tick() is not None:
                    processed += 1
            except Exception as exc:
                warnings.warn(f"[{self.pipeline.source_id}] tick failed ({exc}).")
            if self.max_frames is not None and processed >= self.max_frames:
                break
            next_tick += self.interval
            now = time.monotonic()
            if now > next_tick:
                # Drop the ticks that elapsed while the frame was running
                missed = int((now - next_tick) // self.interval) + 1
                self.missed_ticks += missed
                next_tick += missed * self.interval
            self.stop_event.wait(max(0.0, next_tick - now))

    def stop(self) -> None:
        self.stop_event.set()
