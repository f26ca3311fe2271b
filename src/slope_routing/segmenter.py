"""Split recorded GPS traces into track parts for profile building.

A trace is smoothed, cut into runs of at least ``min_distance`` planar meters
and turned into TrackParts with a 3-D distance, a signed slope and an average
speed. With a map matcher configured, each part is also assigned the class of
the road it was ridden on.
"""

import logging
import math
from collections import defaultdict
from collections.abc import Callable
from dataclasses import replace
from typing import Protocol

from slope_routing.codec import WAY_TYPE
from slope_routing.config import get_setting
from slope_routing.distance import segment_distances
from slope_routing.models import Segment, TracePoint, TrackPart
from slope_routing.smoothing import Direction, MeanFilter, SimpleKalmanFilter, SmoothingFilter

logger = logging.getLogger(__name__)

MIN_PART_DISTANCE = 1.0  # meters

ElevationLookup = Callable[[float, float], float]


class MapMatcher(Protocol):
    def match(self, points: list[TracePoint]) -> list[Segment]:
        """Return the road segments a run of trace points was ridden on."""
        ...


def create_filter(
    filter_type: str = "kalman_combined",
    filter_distance: float = 60.0,
    measurement_noise: float = 6.0,
) -> SmoothingFilter:
    """Build a smoothing filter from its configuration name."""
    if filter_type == "mean":
        return MeanFilter(filter_distance)
    directions = {
        "kalman_forward": Direction.FORWARD,
        "kalman_backward": Direction.BACKWARD,
        "kalman_combined": Direction.COMBINED,
    }
    if filter_type not in directions:
        raise ValueError(f"Unknown filter type: {filter_type}")
    return SimpleKalmanFilter(
        directions[filter_type],
        measurement_noise=measurement_noise,
        distance_scale=filter_distance,
    )


def dominant_way_type(segments: list[Segment]) -> int:
    """Class code covering the most matched distance, -1 if nothing matched."""
    covered = defaultdict(float)
    for segment in segments:
        covered[WAY_TYPE.get_raw(segment.flags)] += segment.distance
    if not covered:
        return -1
    return max(covered, key=covered.get)


class TraceSegmenter:
    def __init__(
        self,
        smoothing_filter: SmoothingFilter | None = None,
        min_distance: float = 200.0,
        map_matcher: MapMatcher | None = None,
        elevation_lookup: ElevationLookup | None = None,
    ):
        self.smoothing_filter = smoothing_filter if smoothing_filter is not None else create_filter()
        self.min_distance = min_distance
        self.map_matcher = map_matcher
        self.elevation_lookup = elevation_lookup

    def extract(self, points: list[TracePoint]) -> list[TrackPart]:
        """Segment a trace into track parts; traces with fewer than 2 points yield none."""
        if len(points) < 2:
            return []

        distances = segment_distances([(p.lat, p.lon) for p in points])
        elevations = self.smoothing_filter.smooth(self._elevations(points), distances)
        # copies, so the caller's points keep their raw elevations
        smoothed = [replace(p, elevation=e) for p, e in zip(points, elevations)]

        parts = []
        start = 0
        while start < len(points) - 1:
            end = start + 1
            distance = distances[start]
            while distance < self.min_distance and end + 1 < len(points):
                end += 1
                distance += distances[end - 1]

            part = self._track_part(smoothed[start:end + 1], distance, elevations[end] - elevations[start])
            if part is not None:
                parts.append(part)
            # consecutive parts share their boundary point
            start = end

        if self.map_matcher is not None:
            for part in parts:
                self._assign_way_type(part)

        logger.debug("Extracted %d track parts from %d points", len(parts), len(points))
        return parts

    def _elevations(self, points: list[TracePoint]) -> list[float]:
        elevations = []
        for point in points:
            if point.elevation is not None:
                elevations.append(point.elevation)
            elif self.elevation_lookup is not None:
                elevations.append(self._lookup_elevation(point))
            else:
                logger.warning("No elevation for point (%f, %f), assuming flat", point.lat, point.lon)
                elevations.append(0.0)
        return elevations

    def _lookup_elevation(self, point: TracePoint) -> float:
        # any failure counts as a miss
        try:
            return self.elevation_lookup(point.lat, point.lon)
        except Exception as e:
            logger.warning("Elevation lookup failed for (%f, %f), assuming flat: %s", point.lat, point.lon, e)
            return 0.0

    def _track_part(self, points: list[TracePoint], planar_distance: float, elevation: float) -> TrackPart | None:
        distance = math.sqrt(planar_distance * planar_distance + elevation * elevation)
        if distance < MIN_PART_DISTANCE:
            logger.debug("Skipping track part shorter than %.0f m", MIN_PART_DISTANCE)
            return None

        start_time, end_time = points[0].time, points[-1].time
        elapsed = (end_time - start_time).total_seconds() if start_time and end_time else 0.0
        if elapsed <= 0:
            logger.debug("Skipping track part without elapsed time")
            return None

        return TrackPart(
            points=list(points),
            distance=distance,
            slope=elevation / distance * 100,
            speed=distance / elapsed * 3.6,
        )

    @classmethod
    def from_config(
        cls,
        config: dict | None = None,
        map_matcher: MapMatcher | None = None,
        elevation_lookup: ElevationLookup | None = None,
    ) -> "TraceSegmenter":
        smoothing_filter = create_filter(
            get_setting(config, "filter_type"),
            float(get_setting(config, "filter_distance")),
            float(get_setting(config, "measurement_noise")),
        )
        return cls(
            smoothing_filter=smoothing_filter,
            min_distance=float(get_setting(config, "track_part_distance")),
            map_matcher=map_matcher,
            elevation_lookup=elevation_lookup,
        )

    def _assign_way_type(self, part: TrackPart) -> None:
        try:
            part.way_type = dominant_way_type(self.map_matcher.match(part.points))
        except Exception as e:
            logger.warning("Map matching failed for track part: %s", e)
            part.way_type = -1
