from __future__ import annotations

import numpy as np
import pytest

from analytics.crowd_metrics import MetricsAggregator, panic_index, stampede_probability
from analytics.history import MetricsHistory
from analytics.restricted_zone import RestrictedZone
from analytics.risk import RiskLevel
from tracking.frame_tracker import MotionSummary, TrackedVector


def _aggregator(seed: int = 0) -> MetricsAggregator:
    return MetricsAggregator(rng=np.random.default_rng(seed))


def _crowd(make_person, count: int, label: str = "person"):
    # Spread over the lower-left part of the frame, away from the zone
    return [make_person(50 + (i % 10) * 40, 500 + (i // 10) * 40, size=20, det_id=f"{label}-{i}", label=label) for i in range(count)]


def test_empty_frame_metrics() -> None:
    metrics = _aggregator().aggregate([], MotionSummary(), 1000, 1000)
    assert metrics.people_count == 0
    assert metrics.density == 0.0
    assert metrics.risk_level is RiskLevel.LOW
    assert dict(metrics.object_counts) == {}
    assert metrics.zone_violations == 0
    assert 80 <= metrics.flow_rate < 120


def test_counts_and_density(make_person) -> None:
    detections = _crowd(make_person, 7) + _crowd(make_person, 2, label="backpack")
    metrics = _aggregator().aggregate(detections, MotionSummary(), 1000, 1000)
    assert metrics.people_count == 7
    assert metrics.density == pytest.approx(7 / 35)
    assert dict(metrics.object_counts) == {"person": 7, "backpack": 2}
    assert metrics.stampede_probability == pytest.approx(7 / 35 / 12)
    assert metrics.panic_index == 0.0


def test_panic_index_blend() -> None:
    assert panic_index(1.0, 1.0) == 0.0
    assert panic_index(2.0, 0.5) == pytest.approx(0.7 * 0.5 + 0.3 * 0.5)
    assert panic_index(6.0, 0.0) == pytest.approx(0.3)


def test_stampede_probability_breakpoint() -> None:
    assert stampede_probability(2.4) == pytest.approx(0.2)
    assert stampede_probability(3.0) == pytest.approx(0.75)
    assert stampede_probability(10.0) == pytest.approx(0.95)


def test_motion_fields_are_carried(make_person) -> None:
    motion = MotionSummary(
        vectors=(TrackedVector(3.0, 4.0),),
        average_displacement=5.0,
        agitation_level=0.25,
        counter_flow_count=2,
        average_flow_direction=45.0,
    )
    metrics = _aggregator().aggregate(_crowd(make_person, 3), motion, 1000, 1000)
    assert metrics.agitation_level == 0.25
    assert metrics.avg_velocity == pytest.approx(0.5)
    assert metrics.counter_flow_count == 2
    assert metrics.average_flow_direction == 45.0


def test_zone_violations_escalate(make_person) -> None:
    inside = [make_person(700 + i * 50, 100, size=20, det_id=f"in-{i}") for i in range(4)]
    metrics = _aggregator().aggregate(inside, MotionSummary(), 1000, 1000)
    assert metrics.zone_violations == 4
    assert metrics.risk_level is RiskLevel.CRITICAL


def test_zone_uses_frame_size(make_person) -> None:
    zone = RestrictedZone()
    person = make_person(800, 100, size=20)
    assert zone.count_violations([person], 1000, 1000) == 1
    # Same centroid against a wider frame falls left of the zone
    assert zone.count_violations([person], 2000, 1000) == 0
    # Bounds are inclusive
    assert zone.contains((0.6, 0.3))
    assert zone.contains((1.0, 0.0))
    assert not zone.contains((0.59, 0.1))


def test_weapon_makes_sparse_scene_critical(make_person) -> None:
    knife = make_person(500, 500, size=10, det_id="k", label="knife")
    metrics = _aggregator().aggregate([knife], MotionSummary(), 1000, 1000)
    assert metrics.people_count == 0
    assert metrics.risk_level is RiskLevel.CRITICAL


def test_dense_crowd(make_person) -> None:
    metrics = _aggregator().aggregate(_crowd(make_person, 100), MotionSummary(agitation_level=0.0), 1000, 1000)
    assert metrics.density == pytest.approx(100 / 35)
    assert metrics.congestion_zone_count == 2
    assert metrics.risk_level is RiskLevel.HIGH
    assert metrics.stampede_probability == pytest.approx(min(0.95, 100 / 35 / 4))


def test_audio_level_supplied_or_estimated(make_person) -> None:
    people = _crowd(make_person, 35)
    motion = MotionSummary(agitation_level=0.5)
    estimated = _aggregator().aggregate(people, motion, 1000, 1000)
    assert estimated.audio_level == pytest.approx(1.0 * 10 + 0.5 * 80)
    supplied = _aggregator().aggregate(people, motion, 1000, 1000, audio_level=63.0)
    assert supplied.audio_level == 63.0
    clamped = _aggregator().aggregate(people, motion, 1000, 1000, audio_level=140.0)
    assert clamped.audio_level == 100.0


def test_flow_rate_is_reproducible_with_seed(make_person) -> None:
    a = _aggregator(5).aggregate(_crowd(make_person, 3), MotionSummary(), 1000, 1000)
    b = _aggregator(5).aggregate(_crowd(make_person, 3), MotionSummary(), 1000, 1000)
    assert a.flow_rate == b.flow_rate


def test_metrics_snapshot_is_read_only(make_person) -> None:
    metrics = _aggregator().aggregate(_crowd(make_person, 2), MotionSummary(), 1000, 1000)
    with pytest.raises(TypeError):
        metrics.object_counts["knife"] = 1  # type: ignore[index]
    payload = metrics.to_dict()
    assert payload["peopleCount"] == 2
    assert payload["riskLevel"] == "LOW"
    assert payload["objectCounts"] == {"person": 2}


def test_history_is_bounded(make_person) -> None:
    history = MetricsHistory(maxlen=3)
    aggregator = _aggregator()
    for n in range(5):
        history.record(aggregator.aggregate(_crowd(make_person, n), MotionSummary(), 1000, 1000))
    assert len(history) == 3
    assert history.latest().people_count == 4
    assert history.peak_people() == 4
    assert history.risk_counts()["LOW"] == 3
    empty = aggregator.aggregate([], MotionSummary(), 1000, 1000)
    assert history.record(empty, live=False) is False
