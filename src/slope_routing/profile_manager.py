"""Immutable, routing-side view of a rider profile.

The manager is built once from a RidersProfile: it sums distance per class,
fits a speed-over-slope curve for every well-observed class and derives the
rider's class and surface preferences. After construction nothing changes, so
a manager can be shared freely between concurrent route searches.
"""

import logging
from collections.abc import Mapping
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from types import MappingProxyType

from slope_routing.codec import WAY_TYPE_SPEEDS, WAY_TYPES, is_paved
from slope_routing.errors import FittingError
from slope_routing.fitting import SigmoidalFitter, WeightedPoint, evaluate_curve
from slope_routing.profile import SLOPE_OFFSET, RidersProfile

logger = logging.getLogger(__name__)

MIN_PROFILE_DISTANCE = 10_000  # meters per class before a curve is fitted
MIN_PROFILE_ENTRIES = 5  # non-empty slope buckets per class
PRIOR_WEIGHT = 40.0
REFERENCE_SPEED = 18.0  # km/h on the flat for PRIOR_SPEEDS

# Speed (km/h) per slope (%) of a reference rider doing 18 km/h on the flat.
# Anchors the fit where a rider has few observations.
PRIOR_SPEEDS = {
    -11: 31.5793915727,
    -10: 30.7795670402,
    -9: 29.9358629791,
    -8: 29.0417156284,
    -7: 28.0888335127,
    -6: 27.0665027317,
    -5: 25.9604922655,
    -4: 24.7512396073,
    -3: 23.4106460433,
    -2: 21.8959271841,
    -1: 20.1364009575,
    0: 18.0,
    1: 16.245,
    2: 14.58,
    3: 13.005,
    4: 11.52,
    5: 10.125,
    6: 8.82,
    7: 7.605,
    8: 6.48,
    9: 5.445,
    10: 4.5,
    11: 3.645,
    12: 2.88,
}


def prior_points(way_type_speed: float, max_speed: float) -> list[WeightedPoint]:
    """Synthetic fit points scaled to a class's base speed and normalized by max_speed."""
    ratio = way_type_speed / REFERENCE_SPEED
    return [
        WeightedPoint(PRIOR_WEIGHT, slope, speed * ratio / max_speed)
        for slope, speed in PRIOR_SPEEDS.items()
    ]


def observed_points(profile: RidersProfile, way_type: int, max_speed: float) -> list[WeightedPoint]:
    """One point per non-empty bucket, weighted by the distance ridden in it."""
    points = []
    for index, entry in enumerate(profile.entries_for(way_type)):
        if entry is not None:
            points.append(WeightedPoint(entry.distance, index - SLOPE_OFFSET, entry.speed / max_speed))
    return points


@dataclass(frozen=True)
class ProfileManager:
    """Fitted speed curves and preferences derived from one riders profile."""

    has_profile: bool = False
    counts: tuple[int, ...] = (0,) * WAY_TYPES
    distances: tuple[float, ...] = (0.0,) * WAY_TYPES
    total_distance: float = 0.0
    best_fit: int | None = None
    speeds: Mapping[int, tuple[float, ...]] = field(default_factory=lambda: MappingProxyType({}))
    way_type_speeds: Mapping[int, float] = field(default_factory=lambda: MappingProxyType(dict(WAY_TYPE_SPEEDS)))
    paved_share: float = 0.0

    @classmethod
    def load(
        cls,
        profile: RidersProfile | None,
        way_type_speeds: Mapping[int, float] = WAY_TYPE_SPEEDS,
        fitter: SigmoidalFitter | None = None,
    ) -> "ProfileManager":
        """Build a manager from a profile; None yields a manager without personalization."""
        speeds_by_class = MappingProxyType(dict(way_type_speeds))
        if profile is None:
            logger.info("No riders profile, using generic speeds and preferences")
            return cls(way_type_speeds=speeds_by_class)

        fitter = fitter or SigmoidalFitter()
        counts = [0] * WAY_TYPES
        distances = [0.0] * WAY_TYPES
        for way_type in range(WAY_TYPES):
            for entry in profile.entries_for(way_type):
                if entry is not None:
                    counts[way_type] += 1
                    distances[way_type] += entry.distance
        total_distance = sum(distances)

        speeds = {}
        best_fit = None
        best_data = 0.0
        for way_type in range(WAY_TYPES):
            if not (distances[way_type] > MIN_PROFILE_DISTANCE and counts[way_type] > MIN_PROFILE_ENTRIES):
                continue

            base_speed = speeds_by_class[way_type]
            max_speed = profile.max_speed(way_type, base_speed)
            try:
                coefficients = fitter.fit(
                    observed_points(profile, way_type, max_speed),
                    prior_points(base_speed, max_speed),
                )
            except FittingError as e:
                logger.warning("Could not fit speed curve for way type %d: %s", way_type, e)
                continue

            speeds[way_type] = evaluate_curve(coefficients, max_speed)
            data = counts[way_type] * distances[way_type]
            if data > best_data:
                best_fit = way_type
                best_data = data

        paved_distance = sum(d for way_type, d in enumerate(distances) if is_paved(way_type))
        paved_share = paved_distance / total_distance if total_distance > 0 else 0.0

        logger.info(
            "Loaded riders profile: %.0f m ridden, %d fitted way types, best fit %s",
            total_distance,
            len(speeds),
            best_fit,
        )
        return cls(
            has_profile=True,
            counts=tuple(counts),
            distances=tuple(distances),
            total_distance=total_distance,
            best_fit=best_fit,
            speeds=MappingProxyType(speeds),
            way_type_speeds=speeds_by_class,
            paved_share=paved_share,
        )

    @classmethod
    def load_async(
        cls,
        profile: RidersProfile | None,
        executor: Executor,
        way_type_speeds: Mapping[int, float] = WAY_TYPE_SPEEDS,
    ) -> Future:
        """Build a manager in the background from a snapshot of the profile."""
        snapshot = RidersProfile.from_dict(profile.to_dict()) if profile is not None else None
        return executor.submit(cls.load, snapshot, way_type_speeds)

    def has_data(self) -> bool:
        return self.has_profile and self.total_distance > 0

    def has_speed_profile(self, way_type: int) -> bool:
        """True when a curve was fitted for this class."""
        return way_type in self.speeds

    def has_filtered_speeds(self) -> bool:
        return self.best_fit is not None

    def speed_per_slope(self, way_type: int, slope_index: int) -> float | None:
        """Personalized speed in km/h for a class and slope bucket, None without data.

        Classes without their own curve borrow the best-fit curve scaled by the
        ratio of the two classes' base speeds.
        """
        if not self.has_profile:
            return None
        if way_type in self.speeds:
            return self.speeds[way_type][slope_index]
        if self.best_fit is not None:
            ratio = self.way_type_speeds[way_type] / self.way_type_speeds[self.best_fit]
            return self.speeds[self.best_fit][slope_index] * ratio
        return None

    def way_type_preference(self, way_type: int) -> float:
        """Share of the rider's total distance ridden on this class."""
        if self.total_distance <= 0:
            return 0.0
        return self.distances[way_type] / self.total_distance

    def prefers_paved_surface(self) -> bool:
        return self.paved_share >= 0.5
