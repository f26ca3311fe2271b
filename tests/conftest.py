from datetime import datetime, timedelta, timezone

import pytest

from slope_routing.codec import WayType
from slope_routing.models import TracePoint, TrackPart
from slope_routing.profile import RidersProfile

BASE_TIME = datetime(2024, 6, 15, 8, 0, 0, tzinfo=timezone.utc)

# Typical rider: 18 km/h on the flat, slower uphill, faster downhill
RIDER_SPEEDS = {slope: 18.0 - 0.9 * slope for slope in range(-8, 11)}


@pytest.fixture
def three_point_trace():
    """Three points ~111 m apart: up 5 m then down 10 m, 130 s in total."""
    return [
        TracePoint(lat=0.0, lon=0.0, elevation=100.0, time=BASE_TIME),
        TracePoint(lat=0.0, lon=0.001, elevation=105.0, time=BASE_TIME + timedelta(seconds=60)),
        TracePoint(lat=0.0, lon=0.002, elevation=95.0, time=BASE_TIME + timedelta(seconds=130)),
    ]


def make_profile(way_types=(WayType.SMALL_WAY_PAVED,), distance_per_slope=1000.0, speeds=None):
    """Build a profile with one entry per slope for each of the given classes."""
    profile = RidersProfile()
    for way_type in way_types:
        for slope, speed in (speeds or RIDER_SPEEDS).items():
            profile.update(TrackPart(points=[], distance=distance_per_slope, slope=slope, speed=speed, way_type=way_type))
    return profile


@pytest.fixture
def rider_profile():
    """A profile with enough paved small-way data to fit a curve."""
    return make_profile()


@pytest.fixture
def empty_profile():
    return RidersProfile()


@pytest.fixture
def profile_factory():
    return make_profile
