"""Detection package.

This package turns raw detector output into de-duplicated, safety-relevant
detections. It provides the decoder for YOLOv8 style anchor tensors, the
greedy non-maximum suppressor, and a registry of inference engines that
map a pixel buffer to a raw output tensor.
"""

from .detections import Detection, COCO_LABELS, SAFETY_RELEVANT_LABELS
from .decoder import DecodeError, DecodeResult, DecodeStatus, DetectionDecoder, seed_detections
from .suppression import Suppressor, iou
from .registry import build_engine, register_engine, available_engines
from .engines import OpenCVDnnEngine, SimulatedEngine

__all__ = [
    "Detection",
    "COCO_LABELS",
    "SAFETY_RELEVANT_LABELS",
    "DecodeError",
    "DecodeResult",
    "DecodeStatus",
    "DetectionDecoder",
    "seed_detections",
    "Suppressor",
    "iou",
    "build_engine",
    "register_engine",
    "available_engines",
    "OpenCVDnnEngine",
    "SimulatedEngine",
]
