"""Tracking package.

This package associates people across consecutive frames to measure
crowd motion. The tracker is a greedy nearest-neighbour matcher whose only
memory is the previous frame, held in a caller-owned state object.
"""

from .frame_tracker import FrameTracker, MotionSummary, TrackedVector, TrackerState

__all__ = ["FrameTracker", "MotionSummary", "TrackedVector", "TrackerState"]
