"""Tests for the dense solver behind the polynomial fits."""

import numpy as np
import pytest

from metrocal.stats.linalg import normal_equations, polynomial_least_squares, solve_linear_system


def test_solves_well_conditioned_system():
    a = np.array([[2.0, 1.0, -1.0], [-3.0, -1.0, 2.0], [-2.0, 1.0, 2.0]])
    b = np.array([8.0, -11.0, -3.0])
    x = solve_linear_system(a, b)
    assert np.allclose(x, [2.0, 3.0, -1.0])


def test_inputs_are_not_modified():
    a = np.array([[0.0, 1.0], [1.0, 0.0]])
    b = np.array([3.0, 4.0])
    a_copy, b_copy = a.copy(), b.copy()
    x = solve_linear_system(a, b)
    assert np.allclose(x, [4.0, 3.0])
    assert np.array_equal(a, a_copy)
    assert np.array_equal(b, b_copy)


def test_singular_matrix_returns_none():
    a = np.array([[1.0, 2.0], [2.0, 4.0]])
    assert solve_linear_system(a, np.array([1.0, 2.0])) is None
    assert solve_linear_system(np.zeros((2, 2)), np.array([1.0, 2.0])) is None


def test_shape_errors():
    with pytest.raises(ValueError):
        solve_linear_system(np.ones((2, 3)), np.ones(2))
    with pytest.raises(ValueError):
        solve_linear_system(np.eye(2), np.ones(3))


def test_normal_equations_layout():
    x = np.array([1.0, 2.0, 3.0])
    y = np.array([2.0, 4.0, 6.0])
    a, b = normal_equations(x, y, 2)
    assert a.shape == (3, 3)
    assert np.allclose(a[0], [3.0, 6.0, 14.0])
    assert np.allclose(a[2], [14.0, 36.0, 98.0])
    assert np.allclose(b, [12.0, 28.0, 72.0])


def test_polynomial_least_squares_wide_range():
    x = np.linspace(0.0, 1e4, 11)
    y = 0.5 + 1.001 * x + 2e-7 * x**2 - 1e-12 * x**3
    coeffs = polynomial_least_squares(x, y, 3)
    assert np.allclose(coeffs, np.polyfit(x, y, 3)[::-1], rtol=1e-6, atol=1e-6)


def test_polynomial_least_squares_constant_x_is_singular():
    assert polynomial_least_squares(np.full(5, 3.0), np.arange(5.0), 2) is None
