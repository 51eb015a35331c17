from __future__ import annotations

import math
from pathlib import Path

import pytest

from pipeline.settings import PipelineSettings, load_settings

CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "default.yaml"


def test_defaults() -> None:
    settings = PipelineSettings.from_dict({})
    assert settings.detection.confidence_floor == 0.4
    assert settings.detection.iou_threshold == 0.5
    assert settings.detection.max_detections == 50
    assert settings.tracking.match_distance == 100.0
    assert settings.tracking.agitation_scale == 20.0
    assert settings.tracking.counter_flow_factor == 0.66
    assert settings.risk.density_divisor == 35.0
    assert (settings.zone.x, settings.zone.y, settings.zone.w, settings.zone.h) == (0.6, 0.0, 0.4, 0.3)
    assert [src.id for src in settings.sources] == ["foreground", "background"]
    assert [src.interval for src in settings.sources] == [0.15, 0.2]


def test_default_config_file_loads() -> None:
    settings = load_settings(str(CONFIG_PATH))
    assert "knife" in settings.detection.allowed_labels
    assert len(settings.risk.escalation_rules) == 4
    assert {src.id for src in settings.sources} == {"foreground", "background"}
    assert settings.sources[0].engine_options == {"num_people": 24}


def test_overrides_from_yaml(tmp_path) -> None:
    path = tmp_path / "crowd.yaml"
    path.write_text(
        "detection:\n"
        "  confidence_floor: 0.55\n"
        "tracking:\n"
        "  match_distance: 80\n"
        "zone:\n"
        "  restricted: {x: 0.0, y: 0.5, w: 0.5, h: 0.5}\n"
        "sources:\n"
        "  - id: gate-1\n"
        "    interval: 0.1\n"
    )
    settings = load_settings(str(path))
    assert settings.detection.confidence_floor == 0.55
    assert settings.tracking.match_distance == 80.0
    assert settings.zone.y == 0.5
    assert [src.id for src in settings.sources] == ["gate-1"]
    assert settings.sources[0].engine == "simulation"


@pytest.mark.parametrize(
    "config",
    [
        {"detection": {"confidence_floor": 1.5}},
        {"detection": {"iou_threshold": -0.1}},
        {"tracking": {"match_distance": 0}},
        {"risk": {"density_divisor": 0}},
        {"zone": {"restricted": {"x": 0.8, "w": 0.4}}},
        {"sources": [{"id": "a"}, {"id": "a"}]},
        {"sources": [{"id": "a", "interval": 0}]},
        {"history_size": 0},
    ],
)
def test_invalid_settings_rejected(config) -> None:
    with pytest.raises(ValueError):
        PipelineSettings.from_dict(config)


def test_counter_flow_factor_is_not_two_thirds() -> None:
    settings = PipelineSettings.from_dict({})
    assert not math.isclose(settings.tracking.counter_flow_factor, 2 / 3)
