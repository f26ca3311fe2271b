"""Rider profile: observed speed and distance per (class, slope) cell.

The profile is the write side of personalization. Ingestion tools feed it
classified track parts; the ProfileManager reads it once and derives the
immutable curves used while routing.
"""

import logging
import math
from dataclasses import dataclass

from slope_routing.codec import WAY_TYPES, WayType
from slope_routing.errors import InvalidTrackPartError, ProfileFormatError
from slope_routing.models import TrackPart

logger = logging.getLogger(__name__)

SLOPES = 60  # slope buckets span -30% .. +30%
SLOPE_OFFSET = SLOPES // 2
FORMAT_VERSION = 1


@dataclass
class RidersEntry:
    """Distance-weighted running mean speed (km/h) and cumulative distance (m)."""

    speed: float = 0.0
    distance: float = 0.0

    def update(self, speed: float, distance: float) -> None:
        if not math.isfinite(distance) or distance <= 0:
            raise InvalidTrackPartError(f"Cannot update entry with distance {distance}")
        if not math.isfinite(speed) or speed < 0:
            raise InvalidTrackPartError(f"Cannot update entry with speed {speed}")

        total = self.distance + distance
        self.speed = (self.speed * self.distance + speed * distance) / total
        self.distance = total


class RidersProfile:
    """Table of [class 0..15][slope -30..+30] riders entries."""

    def __init__(self):
        self.entries: list[list[RidersEntry | None]] = [[None] * (SLOPES + 1) for _ in range(WAY_TYPES)]
        self.total_distance = 0.0

    def entry(self, way_type: int, slope: int) -> RidersEntry | None:
        return self.entries[way_type][slope + SLOPE_OFFSET]

    def entries_for(self, way_type: int) -> list[RidersEntry | None]:
        return self.entries[way_type]

    def speed(self, way_type: int, slope: int) -> float:
        """Mean speed for a cell, NaN when nothing was observed."""
        entry = self.entry(way_type, slope)
        return entry.speed if entry is not None else math.nan

    def distance(self, way_type: int, slope: int) -> float:
        entry = self.entry(way_type, slope)
        return entry.distance if entry is not None else 0.0

    def max_speed(self, way_type: int, way_type_speed: float) -> float:
        """Largest observed speed for a class, at least twice its generic speed."""
        max_speed = way_type_speed * 2
        for entry in self.entries[way_type]:
            if entry is not None and entry.speed > max_speed:
                max_speed = entry.speed
        return max_speed

    def is_empty(self) -> bool:
        return self.total_distance == 0

    def update(self, track_part: TrackPart) -> None:
        """Add a classified track part.

        Raises:
            InvalidWayTypeError: class code outside 0..15, profile unchanged.
            InvalidTrackPartError: degenerate distance or speed, profile unchanged.
        """
        way_type = WayType.from_code(track_part.way_type)

        if not math.isfinite(track_part.slope):
            raise InvalidTrackPartError(f"Cannot update profile with slope {track_part.slope}")
        slope = max(-SLOPE_OFFSET, min(SLOPE_OFFSET, int(track_part.slope)))

        index = slope + SLOPE_OFFSET
        entry = self.entries[way_type][index]
        if entry is None:
            entry = RidersEntry()

        entry.update(track_part.speed, track_part.distance)
        self.entries[way_type][index] = entry
        self.total_distance += track_part.distance

    def update_all(self, track_parts: list[TrackPart]) -> int:
        """Add many track parts, returning how many were skipped as invalid."""
        skipped = 0
        for track_part in track_parts:
            try:
                self.update(track_part)
            except ValueError as e:
                logger.debug("Skipping track part: %s", e)
                skipped += 1
        return skipped

    def to_dict(self) -> dict:
        """Serialize the full table for JSON storage."""
        return {
            "version": FORMAT_VERSION,
            "way_types": WAY_TYPES,
            "slopes": SLOPES,
            "total_distance": self.total_distance,
            "entries": [
                [None if e is None else [e.speed, e.distance] for e in row]
                for row in self.entries
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RidersProfile":
        """Rebuild a profile written by to_dict.

        Raises:
            ProfileFormatError: if the data does not describe a profile table.
        """
        try:
            version = data["version"]
            rows = data["entries"]
            total_distance = float(data["total_distance"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProfileFormatError(f"Invalid profile data: {e}") from e

        if version != FORMAT_VERSION:
            raise ProfileFormatError(f"Unsupported profile version: {version}")
        if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
            raise ProfileFormatError("Profile entries must be a table of rows")
        if len(rows) != WAY_TYPES or any(len(row) != SLOPES + 1 for row in rows):
            raise ProfileFormatError("Profile table has the wrong shape")

        profile = cls()
        profile.total_distance = total_distance
        for i, row in enumerate(rows):
            for j, cell in enumerate(row):
                if cell is None:
                    continue
                try:
                    speed, distance = cell
                    profile.entries[i][j] = RidersEntry(speed=float(speed), distance=float(distance))
                except (TypeError, ValueError) as e:
                    raise ProfileFormatError(f"Invalid profile cell [{i}][{j}]: {cell!r}") from e
        return profile

    def __str__(self) -> str:
        lines = []
        for way_type, row in enumerate(self.entries):
            lines.append(f"-----[ {way_type} ]------")
            for index, entry in enumerate(row):
                if entry is not None:
                    lines.append(f"{index - SLOPE_OFFSET}, {entry.speed}, {entry.distance}")
            lines.append("----------------------")
        return "\n".join(lines)
