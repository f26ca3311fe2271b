import numpy as np
import pytest

from slope_routing.errors import FittingError
from slope_routing.fitting import (
    SigmoidalFitter,
    WeightedPoint,
    evaluate_curve,
    sigmoid,
    sigmoid_gradient,
)


def _points_on_curve(a, b, c, weight=1.0, slopes=range(-10, 11)):
    return [WeightedPoint(weight, x, float(sigmoid(x, a, b, c))) for x in slopes]


class TestSigmoid:
    def test_value_at_center(self):
        assert sigmoid(2.0, 0.6, 0.3, 2.0) == pytest.approx(0.7)

    def test_limits(self):
        assert sigmoid(-1000.0, 0.6, 0.3, 0.0) == pytest.approx(1.0)
        assert sigmoid(1000.0, 0.6, 0.3, 0.0) == pytest.approx(0.4)

    def test_vectorized(self):
        values = sigmoid(np.array([-5.0, 0.0, 5.0]), 0.8, 0.4, 0.0)
        assert values.shape == (3,)
        assert values[0] > values[1] > values[2]

    def test_gradient_matches_finite_differences(self):
        params = np.array([0.7, 0.35, -1.5])
        x = np.array([-6.0, 0.0, 4.0])
        analytic = sigmoid_gradient(x, *params)
        eps = 1e-6
        for k in range(3):
            step = np.zeros(3)
            step[k] = eps
            numeric = (sigmoid(x, *(params + step)) - sigmoid(x, *(params - step))) / (2 * eps)
            np.testing.assert_allclose(analytic[:, k], numeric, rtol=1e-5, atol=1e-8)


class TestSigmoidalFitter:
    def test_recovers_known_curve(self):
        coefficients = SigmoidalFitter().fit(_points_on_curve(0.8, 0.3, 1.0))
        np.testing.assert_allclose(coefficients, [0.8, 0.3, 1.0], rtol=1e-3)

    def test_priors_pull_the_fit(self):
        observed = _points_on_curve(0.8, 0.3, 1.0)
        priors = _points_on_curve(0.5, 0.3, 1.0, weight=1000.0)
        coefficients = SigmoidalFitter().fit(observed, priors)
        assert coefficients[0] == pytest.approx(0.5, abs=0.05)

    def test_deterministic(self):
        points = _points_on_curve(0.7, 0.4, -2.0)
        first = SigmoidalFitter().fit(points)
        second = SigmoidalFitter().fit(points)
        np.testing.assert_array_equal(first, second)

    def test_too_few_points_raises(self):
        with pytest.raises(FittingError, match="at least 3"):
            SigmoidalFitter().fit(_points_on_curve(0.8, 0.3, 1.0, slopes=range(2)))

    def test_non_finite_points_raise(self):
        points = _points_on_curve(0.8, 0.3, 1.0)
        points.append(WeightedPoint(1.0, 3.0, float("nan")))
        with pytest.raises(FittingError, match="finite"):
            SigmoidalFitter().fit(points)

    def test_negative_weight_raises(self):
        points = _points_on_curve(0.8, 0.3, 1.0)
        points.append(WeightedPoint(-1.0, 3.0, 0.5))
        with pytest.raises(FittingError, match="negative"):
            SigmoidalFitter().fit(points)


class TestEvaluateCurve:
    def test_length_and_scale(self):
        values = evaluate_curve([0.8, 0.3, 1.0], scale=30.0)
        assert len(values) == 61
        assert values[31] == pytest.approx(30.0 * 0.6)

    def test_decreasing(self):
        values = evaluate_curve([0.8, 0.3, 1.0], scale=30.0)
        assert all(a > b for a, b in zip(values, values[1:]))
