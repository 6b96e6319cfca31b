"""Tests for the natural cubic spline."""

import numpy as np
import pytest

from highway_planner.planning import CubicSpline1D


def test_passes_through_points():
    x = [-1.0, 0.0, 30.0, 60.0, 90.0]
    y = [0.0, 0.0, 1.0, 4.0, 8.0]
    spline = CubicSpline1D(x, y)
    for xi, yi in zip(x, y):
        assert spline.calc_position(xi) == pytest.approx(yi)


def test_linear_data_is_reproduced():
    x = [0.0, 1.0, 2.0, 3.0]
    y = [2 * v + 1 for v in x]
    spline = CubicSpline1D(x, y)

    assert spline(1.5) == pytest.approx(4.0)
    assert spline.calc_first_derivative(0.25) == pytest.approx(2.0)
    assert np.allclose(spline.c, 0.0)


def test_two_points():
    spline = CubicSpline1D([0.0, 10.0], [0.0, 5.0])
    assert spline(4.0) == pytest.approx(2.0)


def test_smooth_at_knots():
    x = [0.0, 10.0, 20.0, 30.0]
    y = [0.0, 5.0, 0.0, -5.0]
    spline = CubicSpline1D(x, y)
    eps = 1e-7
    left = spline.calc_first_derivative(10.0 - eps)
    right = spline.calc_first_derivative(10.0 + eps)
    assert left == pytest.approx(right, abs=1e-5)


def test_out_of_range():
    spline = CubicSpline1D([0.0, 1.0, 2.0], [0.0, 1.0, 0.0])
    assert spline.calc_position(-0.1) is None
    assert spline.calc_position(2.1) is None

    values = spline.calc_position(np.array([-1.0, 0.5, 3.0]))
    assert np.isnan(values[0])
    assert np.isfinite(values[1])
    assert np.isnan(values[2])


def test_array_matches_scalar():
    spline = CubicSpline1D([0.0, 10.0, 20.0, 30.0], [0.0, 5.0, 0.0, -5.0])
    xs = np.linspace(0.0, 30.0, 7)
    values = spline.calc_position(xs)
    for x, v in zip(xs, values):
        assert spline.calc_position(float(x)) == pytest.approx(v)


def test_invalid_input():
    with pytest.raises(ValueError):
        CubicSpline1D([0.0, 1.0, 1.0], [0.0, 1.0, 2.0])
    with pytest.raises(ValueError):
        CubicSpline1D([0.0, 2.0, 1.0], [0.0, 1.0, 2.0])
    with pytest.raises(ValueError):
        CubicSpline1D([0.0], [0.0])
    with pytest.raises(ValueError):
        CubicSpline1D([0.0, 1.0], [0.0, 1.0, 2.0])
