from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class TracePoint:
    lat: float
    lon: float
    elevation: float | None  # meters
    time: datetime | None


@dataclass
class TrackPart:
    points: list[TracePoint]
    distance: float  # meters, 3-D
    slope: float  # percent, signed
    speed: float  # km/h
    way_type: int = -1  # class code, -1 until map matched


@dataclass
class SegmentAttributes:
    access: bool = True
    ferry: bool = False
    forward: bool = True
    backward: bool = True
    roundabout: bool = False
    speed: float = 0.0  # km/h
    way_type: int = 4  # SMALL_WAY_PAVED
    incline: float = 0.0  # percent
    decline: float = 0.0  # percent
    incline_distance: float = 100.0  # percent of the segment length that inclines


@dataclass
class Segment:
    flags: int
    distance: float  # meters
    unfavored_forward: bool = False  # heading conflicts with a route endpoint
    unfavored_backward: bool = False
    geometry: list[tuple[float, float, float]] = field(default_factory=list)  # (lat, lon, ele)

    def is_unfavored(self, reverse: bool) -> bool:
        return self.unfavored_backward if reverse else self.unfavored_forward
