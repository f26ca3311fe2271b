"""Elevation smoothing filters for GPS traces.

Every filter maps n measurements plus the n - 1 planar distances between them
to n smoothed values. Filters hold configuration only, so one instance can
smooth any number of traces.
"""

from enum import Enum
from typing import Protocol

from slope_routing.codec import round_half_up


class SmoothingFilter(Protocol):
    def smooth(self, measurements: list[float], distances: list[float]) -> list[float]:
        ...


def _check_lengths(measurements: list[float], distances: list[float]) -> None:
    if measurements and len(distances) + 1 != len(measurements):
        raise ValueError(
            "Distances must have exactly one entry less than measurements, "
            f"but distances was {len(distances)} and measurements is {len(measurements)}"
        )


def round2(value: float) -> float:
    return round_half_up(value * 100) / 100


class MeanFilter:
    """Average of every neighbor closer than min_distance, each side walked separately."""

    def __init__(self, min_distance: float):
        self.min_distance = min_distance

    def smooth(self, measurements: list[float], distances: list[float]) -> list[float]:
        _check_lengths(measurements, distances)
        n = len(measurements)

        smoothed = []
        for i in range(n):
            total = measurements[i]
            count = 1

            j = i + 1
            walked = 0.0
            while j < n:
                walked += distances[j - 1]
                if walked >= self.min_distance:
                    break
                total += measurements[j]
                count += 1
                j += 1

            j = i - 1
            walked = 0.0
            while j >= 0:
                walked += distances[j]
                if walked >= self.min_distance:
                    break
                total += measurements[j]
                count += 1
                j -= 1

            smoothed.append(round2(total / count))
        return smoothed


class Direction(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"
    COMBINED = "combined"


class SimpleKalmanFilter:
    """One-dimensional Kalman filter with a constant-elevation process model.

    measurement_noise is the variance of a single elevation sample (6 suits
    European GPS data). Process noise is either constant or, with
    distance_scale set, proportional to the distance from the previous sample
    so that far-apart samples are trusted to differ more.
    """

    def __init__(
        self,
        direction: Direction = Direction.FORWARD,
        measurement_noise: float = 6.0,
        process_noise: float = 0.1,
        distance_scale: float | None = None,
    ):
        self.direction = direction
        self.measurement_noise = measurement_noise
        self.process_noise = process_noise
        self.distance_scale = distance_scale

    def smooth(self, measurements: list[float], distances: list[float]) -> list[float]:
        _check_lengths(measurements, distances)
        if not measurements:
            return []

        if self.direction is Direction.FORWARD:
            return self._forward(measurements, distances)
        if self.direction is Direction.BACKWARD:
            return self._backward(measurements, distances)

        forward = self._forward(measurements, distances)
        backward = self._backward(measurements, distances)
        return [(f + b) / 2 for f, b in zip(forward, backward)]

    def _q(self, index: int, distances: list[float]) -> float:
        if self.distance_scale is None:
            return self.process_noise
        if index == 0:
            return 0.0
        return distances[index - 1] / self.distance_scale

    def _update(self, estimate: float, error: float, measurement: float, q: float) -> tuple[float, float]:
        # Time update
        error_prior = error + q
        # Measurement update
        gain = error_prior / (error_prior + self.measurement_noise)
        return estimate + gain * (measurement - estimate), (1 - gain) * error_prior

    def _forward(self, measurements: list[float], distances: list[float]) -> list[float]:
        estimate, error = measurements[0], 1.0
        estimates = []
        for i, measurement in enumerate(measurements):
            estimate, error = self._update(estimate, error, measurement, self._q(i, distances))
            estimates.append(estimate)
        return estimates

    def _backward(self, measurements: list[float], distances: list[float]) -> list[float]:
        estimate, error = measurements[-1], 1.0
        estimates = [0.0] * len(measurements)
        for i in range(len(measurements) - 1, -1, -1):
            estimate, error = self._update(estimate, error, measurements[i], self._q(i, distances))
            estimates[i] = estimate
        return estimates
