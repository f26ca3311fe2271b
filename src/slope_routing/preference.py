"""Integer desirability of a segment, independent of travel time.

A preference is the sum of a class, a surface and a slope part, clamped to
[-4, 3]. Higher is better. Slopes are fractions (0.05 = 5%).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from slope_routing.codec import (
    DECLINE,
    INCLINE,
    INCLINE_DISTANCE,
    WAY_TYPE,
    WayType,
    is_paved,
)
from slope_routing.models import Segment

if TYPE_CHECKING:
    from slope_routing.profile_manager import ProfileManager

MIN_PREFERENCE = -4
MAX_PREFERENCE = 3

STEEP_SLOPE = 0.2
ROUGH_CLIMB_SLOPE = 0.03
MIN_SLOPE_DISTANCE = 10  # meters

GENERIC_WAY_TYPE_PREFERENCES = {
    WayType.MOTORWAY: -4,
    WayType.ROAD: 0,
    WayType.TERTIARY_ROAD: 1,
    WayType.UNCLASSIFIED_PAVED: 1,
    WayType.SMALL_WAY_PAVED: 1,
    WayType.UNCLASSIFIED_UNPAVED: 1,
    WayType.SMALL_WAY_UNPAVED: 1,
    WayType.TRACK_EASY: 0,
    WayType.TRACK_MIDDLE: -1,
    WayType.TRACK_HARD: -1,
    WayType.PATH_EASY: -1,
    WayType.PATH_MIDDLE: -2,
    WayType.PATH_HARD: -2,
    WayType.CYCLEWAY: 3,
    WayType.MTB_CYCLEWAY: 3,
    WayType.PUSHING_SECTION: -4,
}

ROUGH_WAY_TYPES = frozenset(range(WayType.TRACK_MIDDLE, WayType.PATH_HARD + 1))
AVOIDED_WAY_TYPES = frozenset({WayType.MOTORWAY, WayType.PUSHING_SECTION})
FAVORED_WAY_TYPES = frozenset({WayType.CYCLEWAY, WayType.MTB_CYCLEWAY})

# (minimum distance share, preference), checked in order
SHARE_PREFERENCES = ((0.5, 2), (0.2, 1), (0.05, 0))
RARE_WAY_TYPE_PREFERENCE = -1
SURFACE_MISMATCH_PREFERENCE = -2
UNPAVED_PREFERENCE = -2


class PreferenceProvider(Protocol):
    def calc_preference(
        self,
        way_type: int,
        paved: bool,
        inc_slope: float,
        inc_dist: float,
        dec_slope: float,
        dec_dist: float,
    ) -> int:
        ...


def segment_preference(provider: PreferenceProvider, segment: Segment, reverse: bool) -> int:
    """Decode a segment and ask a provider for its preference in the travel direction."""
    flags = segment.flags
    way_type = WAY_TYPE.get_raw(flags)
    incline = INCLINE.get_value(flags) / 100
    decline = DECLINE.get_value(flags) / 100
    incline_share = INCLINE_DISTANCE.get_value(flags)
    incline_distance = segment.distance * incline_share / 100
    decline_distance = segment.distance * (100 - incline_share) / 100

    if reverse:
        incline, decline = decline, incline
        incline_distance, decline_distance = decline_distance, incline_distance

    return provider.calc_preference(
        way_type, is_paved(way_type), incline, incline_distance, decline, decline_distance
    )


def clamp_preference(preference: int) -> int:
    return max(MIN_PREFERENCE, min(MAX_PREFERENCE, preference))


class GenericPreferenceProvider:
    """Fixed class table plus surface and slope penalties."""

    def calc_preference(self, way_type, paved, inc_slope, inc_dist, dec_slope, dec_dist) -> int:
        preference = (
            self.calc_way_type_preference(way_type)
            + self.calc_surface_preference(paved)
            + self.calc_slope_preference(way_type, inc_slope, inc_dist, dec_slope, dec_dist)
        )
        return clamp_preference(preference)

    def calc_way_type_preference(self, way_type: int) -> int:
        return GENERIC_WAY_TYPE_PREFERENCES[WayType.from_code(way_type)]

    def calc_surface_preference(self, paved: bool) -> int:
        return 0 if paved else UNPAVED_PREFERENCE

    def calc_slope_preference(
        self, way_type: int, inc_slope: float, inc_dist: float, dec_slope: float, dec_dist: float
    ) -> int:
        if inc_dist > MIN_SLOPE_DISTANCE and inc_slope > STEEP_SLOPE:
            return -2
        if way_type in ROUGH_WAY_TYPES:
            if inc_dist > MIN_SLOPE_DISTANCE and inc_slope > ROUGH_CLIMB_SLOPE:
                return -2
            if dec_dist > MIN_SLOPE_DISTANCE and dec_slope > STEEP_SLOPE:
                return -2
        return 0


class ProfilePreferenceProvider(GenericPreferenceProvider):
    """Class and surface preferences learned from where a rider actually rides."""

    def __init__(self, profile_manager: ProfileManager):
        self.profile_manager = profile_manager

    def calc_way_type_preference(self, way_type: int) -> int:
        if not self.profile_manager.has_data():
            return super().calc_way_type_preference(way_type)

        way_type = WayType.from_code(way_type)
        if way_type in AVOIDED_WAY_TYPES:
            return MIN_PREFERENCE
        if way_type in FAVORED_WAY_TYPES:
            return MAX_PREFERENCE

        share = self.profile_manager.way_type_preference(way_type)
        for min_share, preference in SHARE_PREFERENCES:
            if share >= min_share:
                return preference
        return RARE_WAY_TYPE_PREFERENCE

    def calc_surface_preference(self, paved: bool) -> int:
        if not self.profile_manager.has_data():
            return super().calc_surface_preference(paved)
        if self.profile_manager.prefers_paved_surface() != paved:
            return SURFACE_MISMATCH_PREFERENCE
        return 0
