"""Sigmoid curve fitting for speed-over-slope data.

Fits f(x) = 1 - a / (1 + exp(-b (x - c))) to weighted (slope, normalized speed)
points by nonlinear weighted least squares. Observed and synthetic points are
passed as separate sets so callers can weight them independently.
"""

from dataclasses import dataclass

import numpy as np
from scipy.optimize import least_squares
from scipy.special import expit

from slope_routing.errors import FittingError
from slope_routing.profile import SLOPE_OFFSET

DEFAULT_INITIAL_GUESS = (1.0, 0.5, -1.0)


@dataclass(frozen=True)
class WeightedPoint:
    weight: float
    x: float  # slope in percent
    y: float  # speed normalized by the class max speed


def sigmoid(x, a: float, b: float, c: float):
    """Evaluate the speed curve; works on scalars and numpy arrays."""
    return 1 - a * expit(b * (np.asarray(x, dtype=float) - c))


def sigmoid_gradient(x, a: float, b: float, c: float) -> np.ndarray:
    """Partial derivatives of sigmoid with respect to (a, b, c), one row per x."""
    x = np.atleast_1d(np.asarray(x, dtype=float))
    s = expit(b * (x - c))
    ds = s * (1 - s)
    return np.column_stack([-s, -a * (x - c) * ds, a * b * ds])


class SigmoidalFitter:
    """Weighted least-squares fit of the sigmoid speed curve."""

    def __init__(self, initial_guess: tuple[float, float, float] = DEFAULT_INITIAL_GUESS, max_evaluations: int = 2000):
        self.initial_guess = np.asarray(initial_guess, dtype=float)
        self.max_evaluations = max_evaluations

    def fit(self, observed: list[WeightedPoint], priors: list[WeightedPoint] | None = None) -> np.ndarray:
        """Fit (a, b, c) to observed points plus optional prior points.

        Raises:
            FittingError: fewer than 3 points, invalid weights, or no convergence.
        """
        points = list(observed) + list(priors or [])
        if len(points) < len(self.initial_guess):
            raise FittingError(f"Need at least {len(self.initial_guess)} points to fit, got {len(points)}")

        x = np.array([p.x for p in points], dtype=float)
        y = np.array([p.y for p in points], dtype=float)
        weights = np.array([p.weight for p in points], dtype=float)
        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y)) and np.all(np.isfinite(weights))):
            raise FittingError("Fit points must be finite")
        if np.any(weights < 0):
            raise FittingError("Fit weights must not be negative")

        sqrt_weights = np.sqrt(weights)

        def residuals(params: np.ndarray) -> np.ndarray:
            return sqrt_weights * (sigmoid(x, *params) - y)

        def jacobian(params: np.ndarray) -> np.ndarray:
            return sqrt_weights[:, None] * sigmoid_gradient(x, *params)

        try:
            result = least_squares(
                residuals,
                self.initial_guess,
                jac=jacobian,
                method="lm",
                max_nfev=self.max_evaluations,
            )
        except (ValueError, np.linalg.LinAlgError) as e:
            raise FittingError(f"Sigmoid fit failed: {e}") from e

        if not result.success or not np.all(np.isfinite(result.x)):
            raise FittingError(f"Sigmoid fit did not converge: {result.message}")
        return result.x


def evaluate_curve(coefficients, scale: float) -> tuple[float, ...]:
    """Evaluate a fitted curve at every integer slope bucket, scaled to km/h."""
    slopes = np.arange(-SLOPE_OFFSET, SLOPE_OFFSET + 1)
    values = sigmoid(slopes, *coefficients) * scale
    return tuple(float(v) for v in values)
