"""Derive segment attributes from OpenStreetMap-style way and relation tags.

Classification follows the usual cycling reading of OSM data: the highway
value picks a class family, surface, tracktype, smoothness, sac_scale and
mtb:scale pick the class within it, and route relations upgrade ways to
cycleways.
"""

import logging
import math
import re
from collections.abc import Mapping

from slope_routing.codec import (
    ACCESS,
    FERRY,
    MAX_SLOPE,
    MAX_SPEED,
    PUSHING_SECTION_SPEED,
    WAY_TYPE_SPEEDS,
    BicycleNetworkCode,
    WayType,
    encode,
    round_half_up,
)
from slope_routing.distance import haversine_distance
from slope_routing.models import SegmentAttributes

logger = logging.getLogger(__name__)

ACCEPTED_HIGHWAYS = frozenset({
    "living_street", "steps", "cycleway", "path", "footway", "pedestrian", "track",
    "service", "residential", "unclassified", "road", "trunk", "trunk_link",
    "primary", "primary_link", "secondary", "secondary_link", "tertiary",
    "tertiary_link", "motorway", "motorway_link",
})
MOTORWAY_HIGHWAYS = frozenset({"motorway", "motorway_link", "trunk", "trunk_link"})
ROAD_HIGHWAYS = frozenset({"primary", "primary_link", "secondary", "secondary_link"})
TERTIARY_HIGHWAYS = frozenset({"tertiary", "tertiary_link"})
SMALL_WAY_HIGHWAYS = frozenset({"residential", "living_street", "service"})
PUSHING_SECTIONS = frozenset({"footway", "pedestrian", "steps"})

RESTRICTIONS = ("bicycle", "access")
RESTRICTED_VALUES = frozenset({"private", "no", "restricted", "military"})
INTENDED_VALUES = frozenset({"yes", "designated", "official", "permissive"})
ONEWAY_VALUES = frozenset({"yes", "true", "1", "-1"})
OPPOSITE_LANES = frozenset({"opposite", "opposite_lane", "opposite_track"})
ALLOWED_SAC_SCALES = frozenset({"hiking", "mountain_hiking", "demanding_mountain_hiking"})
FLAT_WAY_TAGS = (("tunnel", "yes"), ("bridge", "yes"), ("highway", "steps"))

PAVED_SURFACES = frozenset({
    "paved", "asphalt", "metal", "concrete", "concrete:lanes", "concrete:plates",
})
UNPAVED_SURFACES = frozenset({
    "sett", "cobblestone", "cobblestone:flattened", "paving_stones", "paving_stones:30",
    "compacted", "grass_paver", "wood", "unpaved", "gravel", "ground", "dirt", "grass",
    "earth", "fine_gravel", "ice", "mud", "salt", "sand",
})

SURFACE_SPEED_FACTORS = {
    "concrete:lanes": 0.9,
    "concrete:plates": 0.9,
    "metal": 0.9,
    "cobblestone": 1.2,
    "cobblestone:flattened": 1.2,
    "paving_stones": 1.2,
    "paving_stones:30": 1.2,
    "compacted": 1.2,
    "dirt": 0.8,
    "earth": 0.8,
    "grass": 0.8,
    "grass_paver": 0.8,
    "salt": 0.8,
    "sand": 0.8,
    "ice": 0.5,
    "mud": 0.6,
}

NETWORK_CODES = {
    "icn": BicycleNetworkCode.INTERNATIONAL_CYCLING_NETWORK,
    "ncn": BicycleNetworkCode.NATIONAL_CYCLING_NETWORK,
    "rcn": BicycleNetworkCode.REGIONAL_CYCLING_ROUTES,
    "lcn": BicycleNetworkCode.LOCAL_CYCLING_ROUTES,
    "deprecated": BicycleNetworkCode.DEPRECATED,
}

MIN_SLOPE_DISTANCE = 1.0  # meters
MPH_TO_KMH = 1.609
KNOTS_TO_KMH = 1.852
FERRY_SPEED_FACTOR = 1.4  # ferries wait at the pier, so the trip is slower than the boat
MAXSPEED_FACTOR = 0.9

_SPEED_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(mph|knots|km/h|kmh|kph)?\s*$")


def _has(tags: Mapping[str, str], key: str, values=None) -> bool:
    value = tags.get(key)
    if value is None:
        return False
    if values is None:
        return True
    if isinstance(values, str):
        return value == values
    return value in values


def accept_way(tags: Mapping[str, str]) -> int:
    """Return the access bits for a way, 0 when bicycles cannot use it."""
    highway = tags.get("highway")
    if highway is None:
        if _has(tags, "route", ("ferry", "shuttle_train")):
            bicycle = tags.get("bicycle")
            if (bicycle is None and "foot" not in tags) or bicycle == "yes":
                return ACCESS | FERRY
        if _has(tags, "railway", "platform"):
            return ACCESS
        return 0

    if highway not in ACCEPTED_HIGHWAYS:
        return 0
    if _has(tags, "bicycle", INTENDED_VALUES):
        return ACCESS
    if highway in MOTORWAY_HIGHWAYS:
        return 0
    if _has(tags, "motorroad", "yes"):
        return 0
    if "ford" in tags:
        return 0
    if any(_has(tags, key, RESTRICTED_VALUES) for key in RESTRICTIONS):
        return 0
    if "railway" in tags and not _has(tags, "railway", "platform"):
        return 0

    sac_scale = tags.get("sac_scale")
    if sac_scale is not None and sac_scale not in ALLOWED_SAC_SCALES:
        return 0
    return ACCESS


def relation_code(tags: Mapping[str, str]) -> BicycleNetworkCode | None:
    """Route code contributed by a relation, None for relations that do not matter."""
    route = tags.get("route")
    if route == "bicycle":
        network = tags.get("network")
        if network is None:
            return BicycleNetworkCode.UNCLASSIFIED
        return NETWORK_CODES.get(network.lower())
    if route == "mtb":
        return BicycleNetworkCode.MOUNTAIN_BIKE_ROUTE
    if route == "ferry":
        return BicycleNetworkCode.FERRY
    return None


def is_pushing_section(tags: Mapping[str, str]) -> bool:
    return _has(tags, "highway", PUSHING_SECTIONS) or _has(tags, "railway", "platform")


def _is_unpaved(surface: str | None, tracktype: str | None) -> bool:
    return surface in UNPAVED_SURFACES or (tracktype is not None and tracktype != "grade1")


def classify_way(tags: Mapping[str, str], relation_code: int | None = None) -> WayType:
    """Pick the class code for an accepted, non-ferry way."""
    highway = tags.get("highway")
    surface = tags.get("surface")
    tracktype = tags.get("tracktype")
    sac_scale = tags.get("sac_scale")
    smoothness = tags.get("smoothness")
    mtb_scale = tags.get("mtb:scale")
    cycling_route = relation_code is not None and relation_code > BicycleNetworkCode.FERRY
    bike_intended = _has(tags, "bicycle", INTENDED_VALUES)

    way_type = WayType.SMALL_WAY_PAVED
    if (is_pushing_section(tags) and not cycling_route) or highway == "steps" or surface == "ice":
        way_type = WayType.PUSHING_SECTION
    elif highway in MOTORWAY_HIGHWAYS:
        way_type = WayType.MOTORWAY
    elif highway in ROAD_HIGHWAYS:
        way_type = WayType.ROAD
    elif highway in TERTIARY_HIGHWAYS:
        way_type = WayType.TERTIARY_ROAD
    elif highway == "unclassified":
        if _is_unpaved(surface, tracktype):
            way_type = WayType.UNCLASSIFIED_UNPAVED
        else:
            way_type = WayType.UNCLASSIFIED_PAVED
    elif highway in SMALL_WAY_HIGHWAYS:
        if _is_unpaved(surface, tracktype):
            way_type = WayType.SMALL_WAY_UNPAVED
        else:
            way_type = WayType.SMALL_WAY_PAVED
    elif highway == "track":
        paved = surface in PAVED_SURFACES
        if tracktype in ("grade4", "grade5") and not paved:
            way_type = WayType.TRACK_HARD
        elif tracktype in ("grade2", "grade3") and (surface is None or not (paved or bike_intended)):
            way_type = WayType.TRACK_MIDDLE
        else:
            way_type = WayType.TRACK_EASY
    elif highway == "path":
        if (
            smoothness in ("horrible", "very_horrible")
            or sac_scale in ("demanding_mountain_hiking", "mountain_hiking")
            or mtb_scale in ("4", "5")
        ):
            way_type = WayType.PATH_HARD
        elif (
            smoothness in ("bad", "very_bad")
            or sac_scale == "hiking"
            or mtb_scale == "1"
            or (mtb_scale == "3" and surface not in PAVED_SURFACES and not bike_intended)
        ):
            way_type = WayType.PATH_MIDDLE
        else:
            way_type = WayType.PATH_EASY

    if relation_code == BicycleNetworkCode.MOUNTAIN_BIKE_ROUTE:
        way_type = WayType.MTB_CYCLEWAY
    elif highway == "cycleway" or _has(tags, "bicycle", "designated") or cycling_route:
        way_type = WayType.CYCLEWAY
    return way_type


def parse_speed(value: str | None) -> float | None:
    """Parse an OSM speed value into km/h, None when it cannot be read."""
    if value is None:
        return None
    if value == "walk":
        return 5.0
    match = _SPEED_PATTERN.match(value)
    if match is None:
        return None
    speed = float(match.group(1))
    unit = match.group(2)
    if unit == "mph":
        return speed * MPH_TO_KMH
    if unit == "knots":
        return speed * KNOTS_TO_KMH
    return speed


def way_speed(tags: Mapping[str, str], way_type: int) -> float:
    """Base speed in km/h from the class speed, the surface and any maxspeed."""
    class_speed = WAY_TYPE_SPEEDS.get(way_type)
    if class_speed is None:
        return PUSHING_SECTION_SPEED

    speed = class_speed
    factor = SURFACE_SPEED_FACTORS.get(tags.get("surface", ""))
    if factor is not None:
        speed = round_half_up(factor * class_speed)
    if tags.get("highway") in ("living_street", "steps"):
        speed = round_half_up(class_speed * 0.5)

    max_speeds = [
        s for s in (parse_speed(tags.get(k)) for k in ("maxspeed", "maxspeed:forward", "maxspeed:backward"))
        if s is not None
    ]
    if max_speeds and min(max_speeds) < speed:
        return min(max_speeds) * MAXSPEED_FACTOR
    return speed


def direction_bits(tags: Mapping[str, str]) -> tuple[bool, bool]:
    """Return (forward, backward) traversability from oneway tagging."""
    oneway = (
        _has(tags, "oneway", ONEWAY_VALUES)
        or _has(tags, "oneway:bicycle", ONEWAY_VALUES)
        or "vehicle:backward" in tags
        or "vehicle:forward" in tags
        or "bicycle:forward" in tags
    )
    roundabout = _has(tags, "junction", "roundabout")

    if (
        (oneway or roundabout)
        and not _has(tags, "oneway:bicycle", "no")
        and "bicycle:backward" not in tags
        and not _has(tags, "cycleway", OPPOSITE_LANES)
    ):
        backward_only = (
            _has(tags, "oneway", "-1")
            or _has(tags, "oneway:bicycle", "-1")
            or _has(tags, "vehicle:forward", "no")
            or _has(tags, "bicycle:forward", "no")
        )
        return (not backward_only, backward_only)
    return (True, True)


def slope_attributes(
    geometry: list[tuple[float, float, float]], tags: Mapping[str, str] | None = None
) -> tuple[float, float, float]:
    """Return (incline %, decline %, inclining share %) of a 3-D way geometry.

    Tunnels, bridges and steps are treated as flat, as are geometries shorter
    than 1 m. Slopes saturate at MAX_SLOPE.
    """
    tags = tags or {}
    if any(_has(tags, key, value) for key, value in FLAT_WAY_TAGS) or len(geometry) < 2:
        return 0.0, 0.0, 100.0

    inc_ele = inc_dist = dec_ele = dec_dist = 0.0
    full_dist = 0.0
    for (lat1, lon1, ele1), (lat2, lon2, ele2) in zip(geometry, geometry[1:]):
        delta = ele2 - ele1
        dist = haversine_distance(lat1, lon1, lat2, lon2)
        if delta >= 0:
            inc_ele += delta
            inc_dist += dist
        else:
            dec_ele -= delta
            dec_dist += dist
        full_dist += dist

    if not math.isfinite(full_dist):
        logger.warning("Infinite distance for way geometry, assuming flat")
        return 0.0, 0.0, 100.0
    if full_dist < MIN_SLOPE_DISTANCE:
        return 0.0, 0.0, 100.0

    incline = inc_ele / inc_dist * 100 if inc_dist > MIN_SLOPE_DISTANCE else 0.0
    decline = dec_ele / dec_dist * 100 if dec_dist > MIN_SLOPE_DISTANCE else 0.0
    share = max(0.0, min(100.0, inc_dist / full_dist * 100))
    return min(incline, MAX_SLOPE), min(decline, MAX_SLOPE), share


def parse_duration(value: str | None) -> float:
    """Parse an OSM duration ("HH:MM", "HH:MM:SS" or minutes) into minutes, 0 if unknown."""
    if not value:
        return 0.0
    try:
        parts = [float(p) for p in value.split(":")]
    except ValueError:
        logger.debug("Cannot parse duration %r", value)
        return 0.0
    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 60 + parts[1] + parts[2] / 60
    return 0.0


def ferry_speed(tags: Mapping[str, str], distance: float | None = None) -> float:
    """Speed for a ferry way from its duration and length."""
    unknown_speed = WAY_TYPE_SPEEDS[WayType.SMALL_WAY_UNPAVED]
    short_trip_speed = WAY_TYPE_SPEEDS[WayType.SMALL_WAY_PAVED]
    long_trip_speed = WAY_TYPE_SPEEDS[WayType.ROAD]

    hours = parse_duration(tags.get("duration")) / 60
    if hours <= 0:
        return unknown_speed

    if distance is None:
        try:
            distance = float(tags["estimated_distance"])
        except (KeyError, ValueError):
            distance = None
    if distance is not None and distance > 0:
        short_trip_speed = min(MAX_SPEED, round_half_up(distance / 1000 / hours / FERRY_SPEED_FACTOR))
        long_trip_speed = short_trip_speed

    return long_trip_speed if hours > 1 else short_trip_speed


def encode_way(
    tags: Mapping[str, str],
    relation_tags: list[Mapping[str, str]] | None = None,
    geometry: list[tuple[float, float, float]] | None = None,
) -> int:
    """Encode a tagged way into flags, 0 when bicycles cannot use it."""
    access = accept_way(tags)
    if not access:
        return 0

    codes = [c for c in (relation_code(r) for r in relation_tags or []) if c is not None]
    code = max(codes) if codes else None

    if geometry:
        incline, decline, incline_distance = slope_attributes(geometry, tags)
    else:
        incline, decline, incline_distance = 0.0, 0.0, 100.0

    if access & FERRY:
        length = sum(
            haversine_distance(lat1, lon1, lat2, lon2)
            for (lat1, lon1, _), (lat2, lon2, _) in zip(geometry, geometry[1:])
        ) if geometry else None
        attrs = SegmentAttributes(
            ferry=True,
            speed=ferry_speed(tags, length),
            way_type=WayType.SMALL_WAY_UNPAVED,
        )
    else:
        way_type = classify_way(tags, code)
        forward, backward = direction_bits(tags)
        attrs = SegmentAttributes(
            forward=forward,
            backward=backward,
            roundabout=_has(tags, "junction", "roundabout"),
            speed=way_speed(tags, way_type),
            way_type=way_type,
        )

    attrs.incline = incline
    attrs.decline = decline
    attrs.incline_distance = incline_distance
    return encode(attrs)
