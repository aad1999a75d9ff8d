"""
Cross-frame identity and smoothing for detected objects.

The vision service returns a fresh list of labelled boxes on every cycle
with no notion of identity. ObjectTracker matches each new detection to the
nearest same-name entity of the previous cycle, keeps its id, and blends the
box toward the new position with a first-order exponential filter.
"""

import itertools
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# Max center distance (0-1000 normalized scale) for a same-object match
MATCH_THRESHOLD = 250.0

# Fraction of the movement applied per cycle (1.0 = no smoothing)
SMOOTHING_FACTOR = 0.6


@dataclass(frozen=True)
class BoundingBox:
    """Region on a 0-1000 normalized scale."""

    ymin: float
    xmin: float
    ymax: float
    xmax: float

    @property
    def center(self) -> tuple[float, float]:
        """Center as (x, y)."""
        return ((self.xmin + self.xmax) / 2, (self.ymin + self.ymax) / 2)

    def blend(self, target: "BoundingBox", factor: float) -> "BoundingBox":
        """Move each coordinate ``factor`` of the way toward ``target``."""
        return BoundingBox(
            ymin=self.ymin + (target.ymin - self.ymin) * factor,
            xmin=self.xmin + (target.xmin - self.xmin) * factor,
            ymax=self.ymax + (target.ymax - self.ymax) * factor,
            xmax=self.xmax + (target.xmax - self.xmax) * factor,
        )


@dataclass(frozen=True)
class Detection:
    """One object reported by the vision service for a single frame."""

    name: str
    box: BoundingBox
    short_details: str = ""


@dataclass(frozen=True)
class TrackedEntity:
    """A detection with a stable id and a smoothed box."""

    id: int
    name: str
    box: BoundingBox
    short_details: str = ""


def center_distance(a: BoundingBox, b: BoundingBox) -> float:
    """Euclidean distance between two box centers."""
    ax, ay = a.center
    bx, by = b.center
    return math.hypot(ax - bx, ay - by)


class ObjectTracker:
    """
    Assigns stable ids to detections across cycles.

    The tracker exclusively owns the entity set; callers get immutable
    snapshots. Entities not re-detected in a cycle are dropped (no
    persistence across a miss).
    """

    def __init__(
        self,
        match_threshold: float = MATCH_THRESHOLD,
        smoothing_factor: float = SMOOTHING_FACTOR,
    ):
        self.match_threshold = match_threshold
        self.smoothing_factor = smoothing_factor
        self._entities: tuple[TrackedEntity, ...] = ()
        self._ids = itertools.count(1)

    @property
    def entities(self) -> tuple[TrackedEntity, ...]:
        """Entities from the most recent cycle."""
        return self._entities

    def get(self, entity_id: int) -> Optional[TrackedEntity]:
        """Look up a current entity by id."""
        for entity in self._entities:
            if entity.id == entity_id:
                return entity
        return None

    def reset(self) -> None:
        """Forget all entities and start a new tracking generation."""
        self._entities = ()
        self._ids = itertools.count(1)

    def reconcile(self, detections: Iterable[Detection]) -> tuple[TrackedEntity, ...]:
        """
        Merge one cycle of detections into the tracked set.

        Args:
            detections: Raw detections for the current frame

        Returns:
            The new entity set, which also becomes the previous set for the
            next cycle.
        """
        previous = list(self._entities)
        claimed: set[int] = set()
        smoothed = []

        for det in detections:
            match = self._nearest(det, previous, claimed)
            if match is not None:
                claimed.add(match.id)
                smoothed.append(TrackedEntity(
                    id=match.id,
                    name=det.name,
                    box=match.box.blend(det.box, self.smoothing_factor),
                    short_details=det.short_details,
                ))
            else:
                smoothed.append(TrackedEntity(
                    id=next(self._ids),
                    name=det.name,
                    box=det.box,
                    short_details=det.short_details,
                ))

        self._entities = tuple(smoothed)
        logger.debug(
            "Tracker: %d detections -> %d matched, %d new",
            len(smoothed), len(claimed), len(smoothed) - len(claimed),
        )
        return self._entities

    def _nearest(
        self,
        det: Detection,
        previous: list[TrackedEntity],
        claimed: set[int],
    ) -> Optional[TrackedEntity]:
        """Closest unclaimed same-name entity strictly inside the match radius."""
        name = det.name.lower()
        best = None
        best_distance = self.match_threshold
        for entity in previous:
            if entity.id in claimed or entity.name.lower() != name:
                continue
            dist = center_distance(entity.box, det.box)
            if dist < best_distance:
                best_distance = dist
                best = entity
        return best
