"""Dense linear solves for the polynomial normal equations."""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

# Pivots smaller than this (relative to the largest matrix entry) are treated
# as zero and the system is reported singular.
_SINGULAR_RTOL = 1e-13


def solve_linear_system(a: np.ndarray, b: np.ndarray) -> Optional[np.ndarray]:
    """Solve ``a @ x = b`` by Gaussian elimination with partial pivoting.

    Args:
        a (numpy.ndarray): Square coefficient matrix, shape ``(m, m)``.
        b (numpy.ndarray): Right-hand side, shape ``(m,)``.

    Returns:
        numpy.ndarray | None: Solution vector, or ``None`` when the matrix is
        singular to working precision. Inputs are not modified.

    Raises:
        ValueError: If the shapes are inconsistent.
    """
    a_work = np.array(a, dtype=float, copy=True)
    b_work = np.array(b, dtype=float, copy=True)
    if a_work.ndim != 2 or a_work.shape[0] != a_work.shape[1]:
        raise ValueError(f"Coefficient matrix must be square, got {a_work.shape}.")
    m = a_work.shape[0]
    if b_work.shape != (m,):
        raise ValueError(f"Right-hand side must have shape ({m},), got {b_work.shape}.")

    scale = float(np.max(np.abs(a_work))) if m else 0.0
    if scale == 0.0 or not np.isfinite(scale):
        return None
    tol = _SINGULAR_RTOL * scale

    for col in range(m):
        pivot = col + int(np.argmax(np.abs(a_work[col:, col])))
        if abs(a_work[pivot, col]) <= tol:
            return None
        if pivot != col:
            a_work[[col, pivot]] = a_work[[pivot, col]]
            b_work[[col, pivot]] = b_work[[pivot, col]]
        for row in range(col + 1, m):
            factor = a_work[row, col] / a_work[col, col]
            a_work[row, col:] -= factor * a_work[col, col:]
            a_work[row, col] = 0.0
            b_work[row] -= factor * b_work[col]

    x = np.zeros(m, dtype=float)
    for row in range(m - 1, -1, -1):
        acc = float(np.dot(a_work[row, row + 1 :], x[row + 1 :]))
        x[row] = (b_work[row] - acc) / a_work[row, row]
    if not np.all(np.isfinite(x)):
        return None
    return x


def normal_equations(x: np.ndarray, y: np.ndarray, degree: int) -> tuple[np.ndarray, np.ndarray]:
    """Build the polynomial least-squares normal equations.

    Returns the ``(degree+1) x (degree+1)`` moment matrix ``Σ x^(i+j)`` and the
    vector ``Σ x^i y`` with coefficients in ascending powers.
    """
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    m = degree + 1
    moments = np.array([np.sum(x_arr**p) for p in range(2 * degree + 1)], dtype=float)
    a = np.array([[moments[i + j] for j in range(m)] for i in range(m)], dtype=float)
    b = np.array([np.sum(x_arr**i * y_arr) for i in range(m)], dtype=float)
    return a, b


def polynomial_least_squares(x: np.ndarray, y: np.ndarray, degree: int) -> Optional[np.ndarray]:
    """Ascending polynomial coefficients by least squares, or ``None`` if singular.

    x is mapped onto ``[-1, 1]`` before the normal equations are built, so the
    moment matrix stays well conditioned over wide calibration ranges. The
    solution is then expanded back into powers of the original x.
    """
    x_arr = np.asarray(x, dtype=float)
    centre = 0.5 * float(np.max(x_arr) + np.min(x_arr)) if len(x_arr) else 0.0
    half_span = 0.5 * float(np.ptp(x_arr)) if len(x_arr) else 0.0
    if half_span == 0.0:
        half_span = 1.0
    a, b = normal_equations((x_arr - centre) / half_span, y, degree)
    scaled = solve_linear_system(a, b)
    if scaled is None:
        return None

    # sum_i s_i ((x - c)/h)^i expanded with the binomial theorem
    coeffs = np.zeros(degree + 1, dtype=float)
    for i, s_i in enumerate(scaled):
        for j in range(i + 1):
            coeffs[j] += s_i * math.comb(i, j) * (-centre) ** (i - j) / half_span**i
    if not np.all(np.isfinite(coeffs)):
        return None
    return coeffs
