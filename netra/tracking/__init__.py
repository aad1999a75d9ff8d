"""
Object tracking: stable identity and smoothed boxes across detection cycles.
"""

from netra.tracking.tracker import BoundingBox, Detection, ObjectTracker, TrackedEntity

__all__ = ["BoundingBox", "Detection", "ObjectTracker", "TrackedEntity"]
