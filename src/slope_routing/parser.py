import gpxpy

from slope_routing.models import TracePoint


def parse_gpx(filepath: str) -> list[TracePoint]:
    """Parse a recorded GPX file into trace points, all tracks and segments in order."""
    with open(filepath, "r") as f:
        gpx = gpxpy.parse(f)

    points: list[TracePoint] = []
    for track in gpx.tracks:
        for segment in track.segments:
            for pt in segment.points:
                points.append(
                    TracePoint(
                        lat=pt.latitude,
                        lon=pt.longitude,
                        elevation=pt.elevation,
                        time=pt.time,
                    )
                )
    return points
