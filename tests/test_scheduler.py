from __future__ import annotations

import numpy as np
import pytest

from detection.engines import SimulatedEngine
from pipeline.frame_pipeline import CrowdSafetyPipeline, FrameResult, FrameStatus
from pipeline.scheduler import SourceWorker
from pipeline.settings import PipelineSettings, SourceSettings


def test_worker_processes_frames_until_limit() -> None:
    pipeline = CrowdSafetyPipeline(
        engine=SimulatedEngine(num_people=6, num_anchors=100, seed=4),
        rng=np.random.default_rng(0),
    )
    results: list[FrameResult] = []
    worker = SourceWorker(pipeline, interval=0.01, on_result=results.append, max_frames=3)
    worker.start()
    worker.join(timeout=10)
    assert not worker.is_alive()
    assert [r.frame_index for r in results] == [1, 2, 3]
    assert all(r.metrics.people_count >= 1 for r in results)


def test_worker_passes_audio_and_frames() -> None:
    shapes = []

    def engine(frame):
        shapes.append(frame.shape)
        return np.zeros((1, 84, 4))

    pipeline = CrowdSafetyPipeline(engine=engine, frame_width=320, frame_height=240)
    worker = SourceWorker(pipeline, interval=0.05, audio_source=lambda: 55.0)
    result = worker.tick()
    assert shapes == [(240, 320, 3)]
    assert result.metrics.audio_level == 55.0


def test_worker_skips_missing_frames() -> None:
    pipeline = CrowdSafetyPipeline(engine=lambda frame: np.zeros((1, 84, 4)))
    worker = SourceWorker(pipeline, interval=0.05, frame_source=lambda: None)
    assert worker.tick() is None
    assert pipeline.frame_index == 0


def test_worker_rejects_bad_interval() -> None:
    with pytest.raises(ValueError):
        SourceWorker(CrowdSafetyPipeline(), interval=0)


def test_pipelines_from_sources_are_independent() -> None:
    settings = PipelineSettings()
    fg = CrowdSafetyPipeline.from_source(
        settings, SourceSettings("fg", 0.15, engine_options={"num_people": 4, "num_anchors": 40}, seed=1)
    )
    bg = CrowdSafetyPipeline.from_source(
        settings, SourceSettings("bg", 0.2, engine_options={"num_people": 4, "num_anchors": 40}, seed=1)
    )
    assert fg.engine is not bg.engine
    fg.process_frame(np.zeros((480, 640, 3), dtype=np.uint8))
    assert len(fg.state) > 0
    assert len(bg.state) == 0


@pytest.mark.filterwarnings("ignore::UserWarning")
def test_worker_survives_failing_ticks() -> None:
    pipeline = CrowdSafetyPipeline(
        engine=SimulatedEngine(num_people=4, num_anchors=40, seed=2),
        rng=np.random.default_rng(0),
    )
    calls = {"n": 0}

    def frames():
        calls["n"] += 1
        if calls["n"] == 1:
            raise IOError("camera unplugged")
        if calls["n"] == 2:
            return np.zeros((0, 0, 3), dtype=np.uint8)
        return np.zeros((48, 64, 3), dtype=np.uint8)

    results: list[FrameResult] = []
    worker = SourceWorker(pipeline, interval=0.01, frame_source=frames, on_result=results.append, max_frames=4)
    worker.start()
    worker.join(timeout=10)
    assert not worker.is_alive()
    assert len(results) == 4
    assert results[0].status is FrameStatus.FAILED
    assert all(r.status is not FrameStatus.FAILED for r in results[1:])
