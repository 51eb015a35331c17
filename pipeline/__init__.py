"""Pipeline package.

Wires the decoder, suppressor, tracker and aggregator into a per-source
pipeline, loads its YAML settings, and schedules it at a fixed interval.
"""

from .settings import PipelineSettings, SourceSettings, load_config, load_settings
from .frame_pipeline import CrowdSafetyPipeline, FrameResult, FrameStatus
from .scheduler import SourceWorker

__all__ = [
    "PipelineSettings",
    "SourceSettings",
    "load_config",
    "load_settings",
    "CrowdSafetyPipeline",
    "FrameResult",
    "FrameStatus",
    "SourceWorker",
]
