"""Direction-aware travel speed per segment.

Two variants share one interface: the generic provider adjusts the encoded
base speed with a simple slope physics model, the profile provider reads a
rider's fitted speed curves and falls back to the generic model whenever the
profile has nothing to say about a segment.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Protocol

from slope_routing.codec import (
    DECLINE,
    INCLINE,
    INCLINE_DISTANCE,
    PUSHING_SECTION_SPEED,
    SPEED,
    WAY_TYPE,
)
from slope_routing.models import Segment
from slope_routing.profile import SLOPE_OFFSET, SLOPES

if TYPE_CHECKING:
    from slope_routing.profile_manager import ProfileManager

MIN_ADJUSTED_SPEED = PUSHING_SECTION_SPEED // 2  # km/h
MAX_ADJUSTED_SPEED = 50  # km/h
FASTER_SLOPE_LIMIT = 0.1  # descents steeper than 10% are no faster
SLOWER_SLOPE_LIMIT = 0.2  # climbs of 20% and more are walked


class SpeedProvider(Protocol):
    def calc_speed(self, segment: Segment, reverse: bool) -> float:
        """Return the travel speed in km/h, 0 when the segment must not be traversed."""
        ...


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def faster_factor(slope: float) -> float:
    """Speed-up for a descent; slope is a fraction (0.05 = 5%)."""
    return math.sqrt(1 + 30 * clamp(slope, 0, FASTER_SLOPE_LIMIT))


def slower_factor(slope: float) -> float:
    """Slow-down for a climb; y(0)=1 and y(0.2)=0."""
    factor = 1 - 5 * clamp(slope, 0, SLOWER_SLOPE_LIMIT)
    return factor * factor


def directional_slopes(flags: int, reverse: bool) -> tuple[float, float, float]:
    """Return (climb, descent, climb_share) as fractions for the travel direction."""
    incline = INCLINE.get_value(flags) / 100
    decline = DECLINE.get_value(flags) / 100
    incline_share = INCLINE_DISTANCE.get_value(flags)
    if reverse:
        return decline, incline, (100 - incline_share) / 100
    return incline, decline, incline_share / 100


def adjust_speed(speed: float, climb: float, descent: float, climb_share: float) -> float:
    """Blend climb and descent adjustments as a length-weighted mean."""
    if climb == 0 and descent == 0:
        return speed

    blended = speed * (slower_factor(climb) * climb_share + faster_factor(descent) * (1 - climb_share))
    return clamp(blended, MIN_ADJUSTED_SPEED, MAX_ADJUSTED_SPEED)


def slope_index(slope: int) -> int:
    """Map a signed integer slope in percent to a profile bucket, saturating at the table edges."""
    return int(clamp(SLOPE_OFFSET + slope, 0, SLOPES))


class GenericSpeedProvider:
    """Encoded base speed adjusted by incline and decline."""

    def calc_speed(self, segment: Segment, reverse: bool) -> float:
        speed = SPEED.get_value(segment.flags)
        if speed == 0:
            return 0.0

        climb, descent, climb_share = directional_slopes(segment.flags, reverse)
        return adjust_speed(speed, climb, descent, climb_share)


class ProfileSpeedProvider:
    """Speeds from a rider's fitted curves, generic physics when there are none."""

    def __init__(self, profile_manager: ProfileManager, fallback: SpeedProvider | None = None):
        self.profile_manager = profile_manager
        self.fallback = fallback if fallback is not None else GenericSpeedProvider()

    def calc_speed(self, segment: Segment, reverse: bool) -> float:
        if SPEED.get_value(segment.flags) == 0:
            return 0.0

        speed = self._profile_speed(segment.flags, reverse)
        if speed is None:
            return self.fallback.calc_speed(segment, reverse)
        return speed

    def _profile_speed(self, flags: int, reverse: bool) -> float | None:
        if not self.profile_manager.has_filtered_speeds():
            return None

        way_type = WAY_TYPE.get_raw(flags)
        climb, descent, climb_share = directional_slopes(flags, reverse)

        climb_speed = self.profile_manager.speed_per_slope(way_type, slope_index(round(climb * 100)))
        descent_speed = self.profile_manager.speed_per_slope(way_type, slope_index(-round(descent * 100)))
        if climb_speed is None or descent_speed is None:
            return None

        speed = climb_speed * climb_share + descent_speed * (1 - climb_share)
        return clamp(speed, MIN_ADJUSTED_SPEED, MAX_ADJUSTED_SPEED)
