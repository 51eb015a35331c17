"""Per-frame crowd-safety pipeline.

One `CrowdSafetyPipeline` serves one video source. Each call runs the
strictly sequential chain decode -> suppress -> track -> aggregate and
returns the metrics snapshot together with the surviving detections.

A pipeline refuses to run two frames at once: if a call arrives while the
previous one is still in flight it is skipped and ``None`` is returned, so
the tracker's previous-frame snapshot is never updated concurrently.
Sources that must be processed side by side (e.g. foreground and
background views) each get their own pipeline and tracker state.
"""

from __future__ import annotations

import threading
import time
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Tuple

import numpy as np

from analytics.crowd_metrics import CrowdMetrics, MetricsAggregator
from analytics.history import MetricsHistory
from analytics.restricted_zone import RestrictedZone
from analytics.risk import RiskClassifier
from detection.decoder import DecodeError, DetectionDecoder, seed_detections
from detection.detections import Detection
from detection.registry import build_engine
from detection.suppression import Suppressor
from monitoring.metrics import MetricsExporter
from tracking.frame_tracker import FrameTracker, TrackerState

from .settings import PipelineSettings, SourceSettings

InferenceEngine = Callable[[np.ndarray], Any]


class FrameStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    RESEEDED = "reseeded"
    FAILED = "failed"


@dataclass(frozen=True)
class FrameResult:
    """Immutable output of one processed frame."""

    source_id: str
    frame_index: int
    status: FrameStatus
    metrics: CrowdMetrics
    detections: Tuple[Detection, ...]
    latency: float

    def to_dict(self) -> dict:
        return {
            "source": self.source_id,
            "frame": self.frame_index,
            "status": self.status.value,
            "latency": self.latency,
            "metrics": self.metrics.to_dict(),
            "detections": [det.to_dict() for det in self.detections],
        }


class CrowdSafetyPipeline:
    """Decode, suppress, track and aggregate frames from a single source.

    Parameters
    ----------
    settings : PipelineSettings, optional
        Thresholds and rules; defaults are used when omitted.
    source_id : str
        Name used in diagnostics and exported metrics.
    engine : callable, optional
        Inference engine mapping a pixel buffer to raw output. Only needed
        for `process_frame`.
    frame_width, frame_height : int
        Default source frame size used for the restricted-zone test.
    exporter : MetricsExporter, optional
        Prometheus exporter receiving per-frame observations.
    rng : numpy.random.Generator, optional
        Generator for the flow-rate jitter.
    """

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        source_id: str = "default",
        engine: Optional[InferenceEngine] = None,
        frame_width: int = 640,
        frame_height: int = 480,
        exporter: Optional[MetricsExporter] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.source_id = source_id
        self.engine = engine
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.exporter = exporter

        det = self.settings.detection
        trk = self.settings.tracking
        risk = self.settings.risk
        zone = self.settings.zone
        self.decoder = DetectionDecoder(
            confidence_floor=det.confidence_floor,
            allowed_labels=det.allowed_labels,
            input_size=det.model_input_size,
        )
        self.suppressor = Suppressor(iou_threshold=det.iou_threshold, max_detections=det.max_detections)
        self.tracker = FrameTracker(
            match_distance=trk.match_distance,
            agitation_scale=trk.agitation_scale,
            counter_flow_factor=trk.counter_flow_factor,
            min_flow_vectors=trk.min_flow_vectors,
            wrap_angles=trk.wrap_angles,
        )
        self.state = TrackerState()
        self.aggregator = MetricsAggregator(
            zone=RestrictedZone(zone.x, zone.y, zone.w, zone.h),
            classifier=RiskClassifier(risk.escalation_rules, weapon_labels=list(risk.weapon_labels)),
            density_divisor=risk.density_divisor,
            rng=rng,
        )
        self.history = MetricsHistory(self.settings.history_size)
        self.frame_index = 0
        self.skipped = 0
        self._lock = threading.Lock()
        self._skip_lock = threading.Lock()

    @classmethod
    def from_source(
        cls,
        settings: PipelineSettings,
        source: SourceSettings,
        exporter: Optional[MetricsExporter] = None,
    ) -> "CrowdSafetyPipeline":
        """Build a pipeline and its inference engine for a configured source."""
        options = dict(source.engine_options)
        if source.engine == "simulation":
            options.setdefault("seed", source.seed)
        engine = build_engine(source.engine, **options)
        return cls(
            settings,
            source_id=source.id,
            engine=engine,
            frame_width=source.frame_width,
            frame_height=source.frame_height,
            exporter=exporter,
            rng=np.random.default_rng(source.seed),
        )

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def reset(self) -> None:
        """Forget the previous frame and the metrics history."""
        with self._lock:
            self.state.reset()
            self.history = MetricsHistory(self.settings.history_size)

    # ------------------------------------------------------------------
    def process_frame(self, frame: np.ndarray, audio_level: Optional[float] = None) -> Optional[FrameResult]:
        """Run inference on ``frame`` and process the output.

        Returns ``None`` if another frame is still being processed.
        """
        if self.engine is None:
            raise RuntimeError(f"[{self.source_id}] no inference engine configured")
        if not self._lock.acquire(blocking=False):
            self._record_skip()
            return None
        try:
            start = time.perf_counter()
            shape = getattr(frame, "shape", ())
            if len(shape) < 2 or shape[0] <= 0 or shape[1] <= 0:
                warnings.warn(f"[{self.source_id}] unusable frame of shape {shape}, frame dropped.", stacklevel=2)
                return self._failed(start, "frame", audio_level)
            height, width = shape[:2]
            try:
                output = self.engine(frame)
            except Exception as exc:
                warnings.warn(f"[{self.source_id}] inference failed, frame dropped ({exc}).", stacklevel=2)
                return self._failed(start, "inference", audio_level)
            return self._run(output, None, width, height, audio_level, start)
        finally:
            self._lock.release()

    def process_output(
        self,
        output: Any,
        frame_width: Optional[int] = None,
        frame_height: Optional[int] = None,
        audio_level: Optional[float] = None,
        dims: Optional[Sequence[int]] = None,
    ) -> Optional[FrameResult]:
        """Process raw detector output obtained by the caller.

        Returns ``None`` if another frame is still being processed.
        """
        if not self._lock.acquire(blocking=False):
            self._record_skip()
            return None
        try:
            return self._run(
                output,
                dims,
                frame_width or self.frame_width,
                frame_height or self.frame_height,
                audio_level,
                time.perf_counter(),
            )
        finally:
            self._lock.release()

    # ------------------------------------------------------------------
    def _record_skip(self) -> None:
        with self._skip_lock:
            self.skipped += 1
        if self.exporter is not None:
            self.exporter.record_skip(self.source_id)

    def _finish(self, start: float, status: FrameStatus, metrics: CrowdMetrics, detections) -> FrameResult:
        self.frame_index += 1
        latency = time.perf_counter() - start
        result = FrameResult(self.source_id, self.frame_index, status, metrics, tuple(detections), latency)
        if self.exporter is not None:
            self.exporter.record_frame(self.source_id, latency, status.value, metrics)
        return result

    def _failed(self, start: float, category: str, audio_level: Optional[float]) -> FrameResult:
        if self.exporter is not None:
            self.exporter.record_error(self.source_id, category)
        audio = 0.0 if audio_level is None else float(min(100.0, max(0.0, audio_level)))
        return self._finish(start, FrameStatus.FAILED, CrowdMetrics(audio_level=audio), ())

    def _run(
        self,
        output: Any,
        dims: Optional[Sequence[int]],
        frame_width: int,
        frame_height: int,
        audio_level: Optional[float],
        start: float,
    ) -> FrameResult:
        if frame_width <= 0 or frame_height <= 0:
            warnings.warn(
                f"[{self.source_id}] frame size {frame_width}x{frame_height} is not positive, frame dropped.",
                stacklevel=3,
            )
            return self._failed(start, "frame", audio_level)
        try:
            decoded = self.decoder.decode(output, dims)
        except DecodeError as exc:
            warnings.warn(f"[{self.source_id}] malformed detector output, frame dropped ({exc}).", stacklevel=3)
            return self._failed(start, "decode", audio_level)

        candidates = decoded.candidates
        status = FrameStatus.OK
        if decoded.is_empty:
            status = FrameStatus.EMPTY
            if self.settings.detection.reseed_on_empty:
                candidates = seed_detections()
                status = FrameStatus.RESEEDED

        detections = self.suppressor.suppress(candidates)
        motion = self.tracker.update(self.state, detections)
        metrics = self.aggregator.aggregate(detections, motion, frame_width, frame_height, audio_level)
        self.history.record(metrics)
        return self._finish(start, status, metrics, detections)
