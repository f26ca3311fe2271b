"""Fixed-width bitfield codec for per-segment bicycle attributes.

Layout (version 1), least significant bit first:

    bit  0       access            traversal allowed
    bit  1       ferry
    bit  2       forward           traversable in geometry direction
    bit  3       backward          traversable against geometry direction
    bit  4       roundabout
    bits 5-9     speed             base speed, 2 km/h steps, max 34 km/h
    bits 10-13   way_type          class code 0..15, ordered worst to best
    bits 14-19   incline           percent, saturates at 40
    bits 20-25   decline           percent, saturates at 40
    bits 26-32   incline_distance  inclining share of the length in percent

Slopes are stored as non-negative magnitudes; which field is read gives the
direction. Reversing a segment swaps incline/decline and complements the
inclining share.
"""

import math
from dataclasses import dataclass
from enum import IntEnum

from slope_routing.errors import InvalidWayTypeError
from slope_routing.models import SegmentAttributes

LAYOUT_VERSION = 1
FLAGS_BITS = 33

MAX_SPEED = 34  # km/h, fastest encodable base speed
MAX_SLOPE = 40  # percent
MIN_INCLINE_DISTANCE = 50  # percent
MAX_INCLINE_DISTANCE = 100  # percent
PUSHING_SECTION_SPEED = 4  # km/h


class WayType(IntEnum):
    """Segment class codes, roughly ordered from worst to best for cycling."""

    MOTORWAY = 0
    ROAD = 1
    TERTIARY_ROAD = 2
    UNCLASSIFIED_PAVED = 3
    SMALL_WAY_PAVED = 4
    UNCLASSIFIED_UNPAVED = 5
    SMALL_WAY_UNPAVED = 6
    TRACK_EASY = 7
    TRACK_MIDDLE = 8
    TRACK_HARD = 9
    PATH_EASY = 10
    PATH_MIDDLE = 11
    PATH_HARD = 12
    CYCLEWAY = 13
    MTB_CYCLEWAY = 14
    PUSHING_SECTION = 15

    @classmethod
    def from_code(cls, code: int) -> "WayType":
        """Convert a raw class code, rejecting anything outside 0..15."""
        if isinstance(code, bool) or not isinstance(code, int) or not 0 <= code < WAY_TYPES:
            raise InvalidWayTypeError(f"Waytype must be between 0 and {WAY_TYPES - 1}, but was: {code}")
        return cls(code)


class BicycleNetworkCode(IntEnum):
    """Route relation codes; everything above FERRY is a signed cycling route."""

    UNCLASSIFIED = 0
    DEPRECATED = 1
    FERRY = 2
    INTERNATIONAL_CYCLING_NETWORK = 3
    NATIONAL_CYCLING_NETWORK = 4
    REGIONAL_CYCLING_ROUTES = 5
    LOCAL_CYCLING_ROUTES = 6
    MOUNTAIN_BIKE_ROUTE = 7


WAY_TYPES = len(WayType)

# Generic base speed per class in km/h
WAY_TYPE_SPEEDS = {
    WayType.MOTORWAY: 18,
    WayType.ROAD: 18,
    WayType.TERTIARY_ROAD: 18,
    WayType.UNCLASSIFIED_PAVED: 16,
    WayType.SMALL_WAY_PAVED: 16,
    WayType.UNCLASSIFIED_UNPAVED: 12,
    WayType.SMALL_WAY_UNPAVED: 10,
    WayType.TRACK_EASY: 12,
    WayType.TRACK_MIDDLE: 10,
    WayType.TRACK_HARD: 8,
    WayType.PATH_EASY: 8,
    WayType.PATH_MIDDLE: 6,
    WayType.PATH_HARD: 4,
    WayType.CYCLEWAY: 18,
    WayType.MTB_CYCLEWAY: 14,
    WayType.PUSHING_SECTION: PUSHING_SECTION_SPEED,
}

PAVED_WAY_TYPES = frozenset({
    WayType.MOTORWAY,
    WayType.ROAD,
    WayType.TERTIARY_ROAD,
    WayType.UNCLASSIFIED_PAVED,
    WayType.SMALL_WAY_PAVED,
    WayType.CYCLEWAY,
})


def is_paved(way_type: int) -> bool:
    return way_type in PAVED_WAY_TYPES


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (banker's rounding would drift)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class EncodedValue:
    """A named run of bits inside the flags integer."""

    name: str
    shift: int
    bits: int
    factor: float = 1.0

    @property
    def mask(self) -> int:
        return ((1 << self.bits) - 1) << self.shift

    @property
    def max_raw(self) -> int:
        return (1 << self.bits) - 1

    def get_raw(self, flags: int) -> int:
        return (flags & self.mask) >> self.shift

    def set_raw(self, flags: int, raw: int) -> int:
        if raw < 0 or raw > self.max_raw:
            raise ValueError(f"{self.name} value {raw} does not fit into {self.bits} bits")
        return (flags & ~self.mask) | (raw << self.shift)

    def get_value(self, flags: int) -> float:
        return self.get_raw(flags) * self.factor


ACCESS = 1 << 0
FERRY = 1 << 1
FORWARD = 1 << 2
BACKWARD = 1 << 3
ROUNDABOUT = 1 << 4
DIRECTION_MASK = FORWARD | BACKWARD

SPEED = EncodedValue("speed", 5, 5, factor=2.0)
WAY_TYPE = EncodedValue("way_type", 10, 4)
INCLINE = EncodedValue("incline", 14, 6)
DECLINE = EncodedValue("decline", 20, 6)
INCLINE_DISTANCE = EncodedValue("incline_distance", 26, 7)

_BOOL_FIELDS = {
    "access": ACCESS,
    "ferry": FERRY,
    "forward": FORWARD,
    "backward": BACKWARD,
    "roundabout": ROUNDABOUT,
}
_VALUE_FIELDS = {v.name: v for v in (SPEED, WAY_TYPE, INCLINE, DECLINE, INCLINE_DISTANCE)}

FIELDS = tuple(_BOOL_FIELDS) + tuple(_VALUE_FIELDS)


def _check_number(name: str, value: float) -> float:
    if value is None or math.isnan(value):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def encode_speed(flags: int, speed: float) -> int:
    """Store a base speed; values above MAX_SPEED saturate, positive never becomes 0."""
    speed = min(_check_number("speed", speed), MAX_SPEED)
    raw = round_half_up(speed / SPEED.factor)
    if speed > 0 and raw == 0:
        raw = 1
    return SPEED.set_raw(flags, raw)


def encode_slope(flags: int, encoded: EncodedValue, slope: float) -> int:
    """Store a slope magnitude in percent, silently saturating at MAX_SLOPE."""
    slope = min(_check_number(encoded.name, slope), MAX_SLOPE)
    return encoded.set_raw(flags, round_half_up(slope))


def encode_incline_distance(flags: int, percentage: float) -> int:
    """Store the inclining share, saturating into 50..100."""
    percentage = _check_number("incline_distance", percentage)
    percentage = max(MIN_INCLINE_DISTANCE, min(MAX_INCLINE_DISTANCE, percentage))
    return INCLINE_DISTANCE.set_raw(flags, round_half_up(percentage))


def encode(attrs: SegmentAttributes) -> int:
    """Pack segment attributes into a flags integer."""
    flags = 0
    if attrs.access:
        flags |= ACCESS
    if attrs.ferry:
        flags |= FERRY
    if attrs.forward:
        flags |= FORWARD
    if attrs.backward:
        flags |= BACKWARD
    if attrs.roundabout:
        flags |= ROUNDABOUT

    flags = encode_speed(flags, attrs.speed)
    flags = WAY_TYPE.set_raw(flags, int(WayType.from_code(attrs.way_type)))
    flags = encode_slope(flags, INCLINE, attrs.incline)
    flags = encode_slope(flags, DECLINE, attrs.decline)
    flags = encode_incline_distance(flags, attrs.incline_distance)
    return flags


def decode(flags: int, field: str) -> bool | int | float:
    """Read a single field from a flags integer."""
    if field in _BOOL_FIELDS:
        return bool(flags & _BOOL_FIELDS[field])
    if field == WAY_TYPE.name:
        return WAY_TYPE.get_raw(flags)
    if field in _VALUE_FIELDS:
        return _VALUE_FIELDS[field].get_value(flags)
    raise ValueError(f"Unknown field: {field}")


def decode_attributes(flags: int) -> SegmentAttributes:
    """Read every field from a flags integer."""
    return SegmentAttributes(**{name: decode(flags, name) for name in FIELDS})


def decode_way_type(flags: int) -> WayType:
    return WayType.from_code(WAY_TYPE.get_raw(flags))


def reverse_flags(flags: int) -> int:
    """Flip a segment's direction.

    Swaps the forward/backward access bits and the incline/decline slopes, and
    stores 100 - p as the inclining share. The complement is written raw, so
    reversing twice restores the original flags.
    """
    forward = flags & FORWARD
    backward = flags & BACKWARD
    flags &= ~DIRECTION_MASK
    if forward:
        flags |= BACKWARD
    if backward:
        flags |= FORWARD

    incline = INCLINE.get_raw(flags)
    flags = INCLINE.set_raw(flags, DECLINE.get_raw(flags))
    flags = DECLINE.set_raw(flags, incline)

    percentage = INCLINE_DISTANCE.get_raw(flags)
    return INCLINE_DISTANCE.set_raw(flags, max(0, MAX_INCLINE_DISTANCE - percentage))
