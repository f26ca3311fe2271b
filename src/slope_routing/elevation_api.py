"""Fetch elevation data from DEM APIs."""

import logging
import time

import requests

from slope_routing.models import TracePoint

logger = logging.getLogger(__name__)

# API endpoints
OPEN_ELEVATION_URL = "https://api.open-elevation.com/api/v1/lookup"
OPEN_TOPO_DATA_URL = "https://api.opentopodata.org/v1/srtm30m"

API_URLS = {
    "open-elevation": OPEN_ELEVATION_URL,
    "opentopodata": OPEN_TOPO_DATA_URL,
}

# Seconds between batches; OpenTopoData asks for 1 req/sec
RATE_LIMIT_DELAYS = {
    "open-elevation": 0.5,
    "opentopodata": 1.0,
}


def fetch_dem_elevation(
    points: list[TracePoint],
    api: str = "opentopodata",
    batch_size: int = 100,
) -> list[float]:
    """Fetch DEM elevation for a list of points.

    Args:
        points: List of TracePoints with lat/lon
        api: Which API to use ("open-elevation" or "opentopodata")
        batch_size: Number of points per API request

    Returns:
        List of elevations in meters, same length as points. Locations the
        API has no data for are 0.

    Raises:
        requests.RequestException: If API request fails.
    """
    if api not in API_URLS:
        raise ValueError(f"Unknown elevation API: {api}")

    elevations = []
    for i in range(0, len(points), batch_size):
        batch = points[i : i + batch_size]

        # Build locations string
        locations = "|".join(f"{p.lat},{p.lon}" for p in batch)

        response = requests.get(
            API_URLS[api],
            params={"locations": locations},
            timeout=30,
        )
        response.raise_for_status()

        results = response.json().get("results", [])
        batch_elevations = [r.get("elevation") for r in results]
        batch_elevations += [None] * (len(batch) - len(batch_elevations))
        elevations.extend(e if e is not None else 0.0 for e in batch_elevations[: len(batch)])

        # Rate limiting - be nice to free APIs
        if i + batch_size < len(points):
            time.sleep(RATE_LIMIT_DELAYS[api])

    return elevations


class DemElevationLookup:
    """Single-point elevation lookup for trace points recorded without elevation."""

    def __init__(self, api: str = "opentopodata"):
        if api not in API_URLS:
            raise ValueError(f"Unknown elevation API: {api}")
        self.api = api

    def __call__(self, lat: float, lon: float) -> float:
        try:
            return fetch_dem_elevation([TracePoint(lat=lat, lon=lon, elevation=None, time=None)], self.api)[0]
        except requests.RequestException as e:
            logger.warning("Elevation lookup failed for (%f, %f): %s", lat, lon, e)
            return 0.0
