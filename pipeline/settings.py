"""Pipeline configuration.

Settings are read from a YAML file with the same layout as
``configs/default.yaml``. Every key is optional; missing keys fall back to
the tuned defaults below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml

from analytics.risk import DEFAULT_ESCALATION_RULES, DEFAULT_WEAPON_LABELS
from detection.detections import SAFETY_RELEVANT_LABELS


@dataclass
class DetectionSettings:
    confidence_floor: float = 0.4
    iou_threshold: float = 0.5
    max_detections: int = 50
    allowed_labels: Tuple[str, ...] = tuple(sorted(SAFETY_RELEVANT_LABELS))
    model_input_size: int = 640
    reseed_on_empty: bool = False


@dataclass
class TrackingSettings:
    match_distance: float = 100.0
    agitation_scale: float = 20.0
    counter_flow_factor: float = 0.66
    min_flow_vectors: int = 3
    wrap_angles: bool = False


@dataclass
class ZoneSettings:
    x: float = 0.6
    y: float = 0.0
    w: float = 0.4
    h: float = 0.3


@dataclass
class RiskSettings:
    density_divisor: float = 35.0
    weapon_labels: Tuple[str, ...] = DEFAULT_WEAPON_LABELS
    escalation_rules: List[Dict[str, Any]] = field(default_factory=lambda: [dict(r) for r in DEFAULT_ESCALATION_RULES])


@dataclass
class SourceSettings:
    id: str = "foreground"
    interval: float = 0.15
    frame_width: int = 640
    frame_height: int = 480
    engine: str = "simulation"
    engine_options: Dict[str, Any] = field(default_factory=dict)
    seed: Optional[int] = None


@dataclass
class PipelineSettings:
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    tracking: TrackingSettings = field(default_factory=TrackingSettings)
    zone: ZoneSettings = field(default_factory=ZoneSettings)
    risk: RiskSettings = field(default_factory=RiskSettings)
    sources: List[SourceSettings] = field(
        default_factory=lambda: [SourceSettings("foreground", 0.15), SourceSettings("background", 0.2)]
    )
    history_size: int = 100
    metrics_enabled: bool = False
    metrics_port: Optional[int] = None

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "PipelineSettings":
        """Build settings from a parsed YAML mapping."""
        config = config or {}
        det_cfg = config.get("detection", {}) or {}
        trk_cfg = config.get("tracking", {}) or {}
        zone_cfg = (config.get("zone", {}) or {}).get("restricted", {}) or {}
        risk_cfg = config.get("risk", {}) or {}
        mon_cfg = config.get("monitoring", {}) or {}

        detection = DetectionSettings(
            confidence_floor=float(det_cfg.get("confidence_floor", 0.4)),
            iou_threshold=float(det_cfg.get("iou_threshold", 0.5)),
            max_detections=int(det_cfg.get("max_detections", 50)),
            allowed_labels=tuple(det_cfg.get("allowed_labels", sorted(SAFETY_RELEVANT_LABELS))),
            model_input_size=int(det_cfg.get("model_input_size", 640)),
            reseed_on_empty=bool(det_cfg.get("reseed_on_empty", False)),
        )
        tracking = TrackingSettings(
            match_distance=float(trk_cfg.get("match_distance", 100.0)),
            agitation_scale=float(trk_cfg.get("agitation_scale", 20.0)),
            counter_flow_factor=float(trk_cfg.get("counter_flow_factor", 0.66)),
            min_flow_vectors=int(trk_cfg.get("min_flow_vectors", 3)),
            wrap_angles=bool(trk_cfg.get("wrap_angles", False)),
        )
        zone = ZoneSettings(
            x=float(zone_cfg.get("x", 0.6)),
            y=float(zone_cfg.get("y", 0.0)),
            w=float(zone_cfg.get("w", 0.4)),
            h=float(zone_cfg.get("h", 0.3)),
        )
        risk = RiskSettings(
            density_divisor=float(risk_cfg.get("density_divisor", 35.0)),
            weapon_labels=tuple(risk_cfg.get("weapon_labels", DEFAULT_WEAPON_LABELS)),
            escalation_rules=list(risk_cfg.get("escalation_rules", [dict(r) for r in DEFAULT_ESCALATION_RULES])),
        )

        sources: List[SourceSettings] = []
        for idx, src_cfg in enumerate(config.get("sources", []) or []):
            sources.append(
                SourceSettings(
                    id=src_cfg.get("id", f"source{idx}"),
                    interval=float(src_cfg.get("interval", 0.15)),
                    frame_width=int(src_cfg.get("frame_width", 640)),
                    frame_height=int(src_cfg.get("frame_height", 480)),
                    engine=src_cfg.get("engine", "simulation"),
                    engine_options=dict(src_cfg.get("engine_options", {}) or {}),
                    seed=src_cfg.get("seed"),
                )
            )

        settings = cls(
            detection=detection,
            tracking=tracking,
            zone=zone,
            risk=risk,
            history_size=int(config.get("history_size", 100)),
            metrics_enabled=bool(mon_cfg.get("enable_metrics", False)),
            metrics_port=mon_cfg.get("metrics_port"),
        )
        if sources:
            settings.sources = sources
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ValueError for settings the pipeline cannot run with."""
        det = self.detection
        if not 0.0 <= det.confidence_floor < 1.0:
            raise ValueError(f"confidence_floor must be in [0, 1), got {det.confidence_floor}")
        if not 0.0 <= det.iou_threshold <= 1.0:
            raise ValueError(f"iou_threshold must be in [0, 1], got {det.iou_threshold}")
        if det.max_detections <= 0 or det.model_input_size <= 0:
            raise ValueError("max_detections and model_input_size must be positive")
        trk = self.tracking
        if trk.match_distance <= 0 or trk.agitation_scale <= 0:
            raise ValueError("match_distance and agitation_scale must be positive")
        if self.risk.density_divisor <= 0:
            raise ValueError(f"density_divisor must be positive, got {self.risk.density_divisor}")
        z = self.zone
        if min(z.x, z.y, z.w, z.h) < 0 or z.x + z.w > 1.0 + 1e-9 or z.y + z.h > 1.0 + 1e-9:
            raise ValueError(f"Restricted zone must lie within the unit square, got {z}")
        ids = [src.id for src in self.sources]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Source ids must be unique, got {ids}")
        for src in self.sources:
            if src.interval <= 0 or src.frame_width <= 0 or src.frame_height <= 0:
                raise ValueError(f"Source '{src.id}' needs a positive interval and frame size")
        if self.history_size <= 0:
            raise ValueError(f"history_size must be positive, got {self.history_size}")


def load_config(config_path: str) -> dict:
    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def load_settings(config_path: str) -> PipelineSettings:
    return PipelineSettings.from_dict(load_config(config_path))
