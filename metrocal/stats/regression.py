"""Fitting primitives for every supported curve family.

This module supports:
- ordinary least squares for linear, polynomial (2nd/3rd order), power,
  exponential and logarithmic families, the last three in linearised space,
- the Theil-Sen robust line,
- a hard split searched over every admissible breakpoint, and
- a flexible split whose two segments are blended across an overlap band.

The primitives only fit. Validation, information criteria and the quality
verdict are assembled by :mod:`metrocal.stats.analysis`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.stats import theilslopes

from ..config import DEFAULT_CONFIG, EngineConfig
from ..models import (
    Coefficients,
    CurveModel,
    LinearCoeffs,
    PolynomialCoeffs,
    SegmentFit,
    SplitCoeffs,
)
from .linalg import polynomial_least_squares

LOGGER = logging.getLogger(__name__)

# Smallest argument passed to a logarithm or power of x.
_X_FLOOR = 1e-300
# Largest exponent evaluated by the exponential family.
_EXP_CAP = 700.0
# Spread below this many ulps of |x| per point is rounding noise, not variance.
_SXX_ULPS = 64.0

SubModels = Tuple[CurveModel, CurveModel]


@dataclass(frozen=True)
class CurveFit:
    """Raw output of a fitting primitive.

    ``x_fit``/``y_fit``/``fitted``/``residuals`` live in the family's fitting
    space (log-log for power, log-y for exponential, log-x for logarithmic,
    original space for everything else, including both split families).
    ``num_coefficients`` counts fitted coefficients; ``k`` is the parameter
    count used by the information criteria.
    """

    model: CurveModel
    coefficients: Coefficients
    x: np.ndarray
    y: np.ndarray
    x_fit: np.ndarray
    y_fit: np.ndarray
    fitted: np.ndarray
    residuals: np.ndarray
    x_bar: float
    sxx: float
    num_coefficients: int
    k: int
    notes: Tuple[str, ...] = ()

    @property
    def n(self) -> int:
        return int(len(self.x))

    @property
    def sse(self) -> float:
        return float(np.sum(self.residuals**2))

    @property
    def df_res(self) -> int:
        return self.n - self.num_coefficients


# ---------------------------------------------------------------------------
# Domain handling
# ---------------------------------------------------------------------------


def domain_mask(x: np.ndarray, y: np.ndarray, model: CurveModel) -> np.ndarray:
    """Boolean mask of pairs a family can be fitted to."""
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    if model is CurveModel.LOGARITHMIC:
        return x_arr > 0
    if model is CurveModel.POWER:
        return (x_arr > 0) & (y_arr > 0)
    if model is CurveModel.EXPONENTIAL:
        return y_arr > 0
    return np.ones(len(x_arr), dtype=bool)


def filter_domain(
    x: np.ndarray,
    y: np.ndarray,
    model: CurveModel,
    sub_models: Optional[SubModels] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Drop pairs incompatible with ``model`` (and both split sub-families).

    Non-positive inputs to log/power/exponential families are silently
    filtered here; running out of points is handled by the caller.
    """
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    mask = np.ones(len(x_arr), dtype=bool)
    families = [model]
    if model is CurveModel.PIECEWISE_MIXED and sub_models is not None:
        families = list(sub_models)
    for family in families:
        mask &= domain_mask(x_arr, y_arr, family)
    dropped = int(np.sum(~mask))
    if dropped:
        LOGGER.warning(
            "Dropped %d point(s) outside the domain of the %s model.",
            dropped,
            model.value,
        )
    return x_arr[mask], y_arr[mask]


def to_fit_space(model: CurveModel, x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    if model is CurveModel.POWER:
        return np.log(x_arr), np.log(y_arr)
    if model is CurveModel.EXPONENTIAL:
        return x_arr, np.log(y_arr)
    if model is CurveModel.LOGARITHMIC:
        return np.log(x_arr), y_arr
    return x_arr, y_arr


def x_to_fit_space(model: CurveModel, x: float) -> float:
    """Map a query point to the space the family's statistics live in."""
    if model in (CurveModel.POWER, CurveModel.LOGARITHMIC):
        return math.log(max(float(x), _X_FLOOR))
    return float(x)


# ---------------------------------------------------------------------------
# Single-segment primitives
# ---------------------------------------------------------------------------


def centred_sxx(x: np.ndarray, x_bar: float) -> float:
    """Sum of squared deviations from ``x_bar``, 0 when it is only rounding noise.

    Constant x such as seven copies of 0.1 leaves ~1e-33 after centring; that
    is reported as exactly zero so callers take their degenerate branch.
    """
    x_arr = np.asarray(x, dtype=float)
    if len(x_arr) == 0:
        return 0.0
    sxx = float(np.sum((x_arr - x_bar) ** 2))
    noise = _SXX_ULPS * np.finfo(float).eps * float(np.max(np.abs(x_arr)))
    return 0.0 if sxx <= len(x_arr) * noise**2 else sxx


def ols_line(x: np.ndarray, y: np.ndarray) -> Tuple[float, float, bool]:
    """Least-squares ``(intercept, slope)``.

    Returns a third flag that is ``True`` when x has zero variance; the slope
    is then 0 and the intercept is mean(y).
    """
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    x_bar = float(np.mean(x_arr))
    y_bar = float(np.mean(y_arr))
    sxx = centred_sxx(x_arr, x_bar)
    if sxx <= 0:
        return y_bar, 0.0, True
    slope = float(np.sum((x_arr - x_bar) * (y_arr - y_bar)) / sxx)
    return y_bar - slope * x_bar, slope, False


def theil_sen_line(x: np.ndarray, y: np.ndarray) -> Tuple[float, float, bool]:
    """Theil-Sen ``(intercept, slope)``.

    The slope is the median of pairwise slopes over pairs with distinct x; the
    intercept is the median of ``y - slope*x``.
    """
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    if np.ptp(x_arr) == 0:
        return float(np.median(y_arr)), 0.0, True
    res = theilslopes(y_arr, x_arr, method="joint")
    return float(res.intercept), float(res.slope), False


def polynomial_terms(x: np.ndarray, y: np.ndarray, degree: int) -> Tuple[Tuple[float, ...], bool]:
    """Polynomial coefficients (ascending) from the normal equations.

    A singular moment matrix falls back to a straight line padded with zero
    higher-order terms; the second return value flags that fallback.
    """
    solution = polynomial_least_squares(x, y, degree)
    if solution is None:
        intercept, slope, _ = ols_line(x, y)
        return (intercept, slope) + (0.0,) * (degree - 1), True
    return tuple(float(c) for c in solution), False


def _poly_eval(terms: Sequence[float], x: np.ndarray | float) -> np.ndarray | float:
    acc = 0.0
    for power, coef in enumerate(terms):
        acc = acc + coef * np.power(x, power)
    return acc


def fit_single(x: np.ndarray, y: np.ndarray, model: CurveModel) -> CurveFit:
    """Fit one non-split family to already domain-filtered data."""
    if model.is_split:
        raise ValueError(f"fit_single does not handle split family {model.value}.")
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    x_t, y_t = to_fit_space(model, x_arr, y_arr)
    notes: list[str] = []

    if model.is_polynomial:
        degree = 3 if model is CurveModel.POLYNOMIAL_3 else 2
        terms, singular = polynomial_terms(x_t, y_t, degree)
        if singular:
            notes.append("Singular normal equations; fell back to a straight line.")
        coefficients: Coefficients = PolynomialCoeffs(terms)
        fitted = np.asarray(_poly_eval(terms, x_t), dtype=float)
    else:
        if model is CurveModel.THEIL_SEN:
            intercept, slope, degenerate = theil_sen_line(x_t, y_t)
        else:
            intercept, slope, degenerate = ols_line(x_t, y_t)
        if degenerate:
            notes.append("Zero variance in x; slope set to 0.")
        fitted = intercept + slope * x_t
        c0 = math.exp(intercept) if model.is_relative else intercept
        coefficients = LinearCoeffs(c0, slope)

    if notes:
        LOGGER.warning("%s fit: %s", model.value, " ".join(notes))

    x_bar = float(np.mean(x_t))
    return CurveFit(
        model=model,
        coefficients=coefficients,
        x=x_arr,
        y=y_arr,
        x_fit=x_t,
        y_fit=y_t,
        fitted=fitted,
        residuals=y_t - fitted,
        x_bar=x_bar,
        sxx=centred_sxx(x_t, x_bar),
        num_coefficients=model.num_params,
        k=model.num_params + 1,
        notes=tuple(notes),
    )


def residual_std_dev(sse: float, df: int) -> float:
    return math.sqrt(max(float(sse), 0.0) / (df if df > 0 else 1))


def segment_from_fit(fit: CurveFit) -> SegmentFit:
    return SegmentFit(
        model=fit.model,
        coefficients=fit.coefficients,  # type: ignore[arg-type]
        residual_std_dev=residual_std_dev(fit.sse, fit.df_res),
        x_bar=fit.x_bar,
        sxx=fit.sxx,
        n=fit.n,
        df_res=fit.df_res,
        sse=fit.sse,
        lower=float(np.min(fit.x)),
        upper=float(np.max(fit.x)),
    )


# ---------------------------------------------------------------------------
# Split primitives
# ---------------------------------------------------------------------------


def _sorted_xy(x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    order = np.argsort(np.asarray(x, dtype=float), kind="mergesort")
    return np.asarray(x, dtype=float)[order], np.asarray(y, dtype=float)[order]


def _split_fit(
    model: CurveModel,
    x: np.ndarray,
    y: np.ndarray,
    split: SplitCoeffs,
    num_coefficients: int,
    notes: Tuple[str, ...] = (),
) -> CurveFit:
    fitted = np.array([predict_value(xi, model, split) for xi in x], dtype=float)
    x_bar = float(np.mean(x))
    return CurveFit(
        model=model,
        coefficients=split,
        x=x,
        y=y,
        x_fit=x,
        y_fit=y,
        fitted=fitted,
        residuals=y - fitted,
        x_bar=x_bar,
        sxx=centred_sxx(x, x_bar),
        num_coefficients=num_coefficients,
        # all segment coefficients + split location + error variance
        k=num_coefficients + 2,
        notes=notes,
    )


def fit_hard_split(
    x: np.ndarray, y: np.ndarray, config: EngineConfig = DEFAULT_CONFIG
) -> CurveFit:
    """Two independent straight lines joined at the SSE-optimal breakpoint.

    Every breakpoint index leaving ``config.min_segment_points`` points on each
    side is evaluated; the first index achieving the minimum total SSE wins.
    Below ``config.min_split_points`` points a single straight line is fitted.
    """
    xs, ys = _sorted_xy(x, y)
    n = len(xs)
    if n < config.min_split_points:
        LOGGER.info("Split regression needs %d points, got %d; fitting a line.", config.min_split_points, n)
        return fit_single(xs, ys, CurveModel.LINEAR)

    seg = config.min_segment_points
    best_idx = -1
    best_sse = math.inf
    for idx in range(seg - 1, n - seg):
        low = fit_single(xs[: idx + 1], ys[: idx + 1], CurveModel.LINEAR)
        high = fit_single(xs[idx + 1 :], ys[idx + 1 :], CurveModel.LINEAR)
        total = low.sse + high.sse
        if total < best_sse:
            best_sse = total
            best_idx = idx

    low_fit = fit_single(xs[: best_idx + 1], ys[: best_idx + 1], CurveModel.LINEAR)
    high_fit = fit_single(xs[best_idx + 1 :], ys[best_idx + 1 :], CurveModel.LINEAR)
    boundary = float(xs[best_idx])
    split = SplitCoeffs(
        low=segment_from_fit(low_fit),
        high=segment_from_fit(high_fit),
        boundary=boundary,
        band_start=boundary,
        band_end=boundary,
    )
    LOGGER.debug("Hard split at x=%g (total SSE %.6g).", boundary, best_sse)
    return _split_fit(CurveModel.PIECEWISE_LINEAR, xs, ys, split, num_coefficients=4)


def fit_flexible_split(
    x: np.ndarray,
    y: np.ndarray,
    sub_models: SubModels,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CurveFit:
    """Two independently chosen families blended across an overlap band.

    The breakpoint is fixed near the midpoint: with ``mid = n // 2`` the low
    segment holds points ``0..mid`` and the high segment ``mid-1..n-1``, so the
    two share two points. The band runs from the last point unique to the low
    segment to the first point unique to the high segment; inside it the
    prediction is ``(1-a)*y_low + a*y_high`` with ``a`` rising linearly from 0
    to 1, which keeps the curve continuous at both band edges.
    """
    low_model, high_model = (CurveModel(m) for m in sub_models)
    if low_model.is_split or high_model.is_split:
        raise ValueError("Split segments must use single-segment families.")
    xs, ys = _sorted_xy(x, y)
    n = len(xs)
    if n < config.min_split_points:
        LOGGER.info(
            "Blended split needs %d points, got %d; fitting %s only.",
            config.min_split_points,
            n,
            low_model.value,
        )
        return fit_single(xs, ys, low_model)

    mid = n // 2
    low_fit = fit_single(xs[: mid + 1], ys[: mid + 1], low_model)
    high_fit = fit_single(xs[mid - 1 :], ys[mid - 1 :], high_model)
    split = SplitCoeffs(
        low=segment_from_fit(low_fit),
        high=segment_from_fit(high_fit),
        boundary=0.5 * float(xs[mid - 1] + xs[mid]),
        band_start=float(xs[mid - 2]),
        band_end=float(xs[mid + 1]),
    )
    notes = low_fit.notes + high_fit.notes
    return _split_fit(
        CurveModel.PIECEWISE_MIXED,
        xs,
        ys,
        split,
        num_coefficients=low_model.num_params + high_model.num_params,
        notes=notes,
    )


def fit_model(
    x: np.ndarray,
    y: np.ndarray,
    model: CurveModel,
    sub_models: Optional[SubModels] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CurveFit:
    """Dispatch to the primitive for ``model``.

    Args:
        x (numpy.ndarray): Domain-filtered independent values.
        y (numpy.ndarray): Domain-filtered dependent values.
        model (CurveModel): Family to fit.
        sub_models (tuple[CurveModel, CurveModel] | None): Low/high families
            for the flexible split; defaults to two straight lines.
        config (EngineConfig): Split size thresholds.

    Returns:
        CurveFit: The fit. Its ``model`` may differ from the request when a
        split family fell back to a single segment.
    """
    if model is CurveModel.PIECEWISE_LINEAR:
        return fit_hard_split(x, y, config)
    if model is CurveModel.PIECEWISE_MIXED:
        return fit_flexible_split(x, y, sub_models or (CurveModel.LINEAR, CurveModel.LINEAR), config)
    return fit_single(x, y, model)


# ---------------------------------------------------------------------------
# Prediction and equation rendering
# ---------------------------------------------------------------------------


def as_coefficients(model: CurveModel, values: Coefficients | Sequence[float]) -> Coefficients:
    """Accept either a coefficient variant or a plain ascending sequence."""
    if isinstance(values, (LinearCoeffs, PolynomialCoeffs, SplitCoeffs)):
        return values
    if model.is_split:
        raise ValueError(
            f"{model.value} needs SplitCoeffs; a flat coefficient sequence is ambiguous."
        )
    seq = [float(v) for v in values]
    if model.is_polynomial:
        return PolynomialCoeffs(tuple(seq))
    padded = (seq + [0.0, 0.0])[:2]
    return LinearCoeffs(padded[0], padded[1])


def predict_value(
    x: float,
    model: CurveModel | str,
    coefficients: Coefficients | Sequence[float],
) -> float:
    """Evaluate a fitted family at ``x`` in original units.

    Power and logarithmic families clamp non-positive ``x`` to a tiny positive
    floor and the exponential exponent is capped, so the result is always
    finite for finite coefficients.
    """
    family = CurveModel(model)
    coeffs = as_coefficients(family, coefficients)
    xv = float(x)

    if isinstance(coeffs, SplitCoeffs):
        y_low = predict_value(xv, coeffs.low.model, coeffs.low.coefficients)
        y_high = predict_value(xv, coeffs.high.model, coeffs.high.coefficients)
        alpha = coeffs.blend_weight(xv)
        return (1.0 - alpha) * y_low + alpha * y_high
    if isinstance(coeffs, PolynomialCoeffs):
        return float(_poly_eval(coeffs.terms, xv))

    c0, c1 = coeffs.c0, coeffs.c1
    if family is CurveModel.POWER:
        return c0 * max(xv, _X_FLOOR) ** c1
    if family is CurveModel.EXPONENTIAL:
        return c0 * math.exp(min(c1 * xv, _EXP_CAP))
    if family is CurveModel.LOGARITHMIC:
        return c0 + c1 * math.log(max(xv, _X_FLOOR))
    return c0 + c1 * xv


def _sci(value: float) -> str:
    return f"{value:.4e}"


def _signed(value: float) -> str:
    return f"- {_sci(abs(value))}" if value < 0 else f"+ {_sci(value)}"


def render_equation(model: CurveModel, coefficients: Coefficients) -> str:
    """Human-readable equation for a fitted family."""
    if isinstance(coefficients, SplitCoeffs):
        low = coefficients.low.model.label
        high = coefficients.high.model.label
        if coefficients.is_blended:
            return (
                f"Blended split: [{low}] to [{high}], overlap "
                f"{coefficients.band_start:.6g} to {coefficients.band_end:.6g}"
            )
        return f"Split regression: [{low}] | [{high}] at x = {coefficients.boundary:.6g}"
    if isinstance(coefficients, PolynomialCoeffs):
        t = coefficients.terms
        parts = [f"y = {_sci(t[0])}", f"{_signed(t[1])}·x", f"{_signed(t[2])}·x²"]
        if len(t) > 3:
            parts.append(f"{_signed(t[3])}·x³")
        return " ".join(parts)

    c0, c1 = coefficients.c0, coefficients.c1
    if model is CurveModel.POWER:
        return f"y = {_sci(c0)}·x^{_sci(c1)}"
    if model is CurveModel.EXPONENTIAL:
        return f"y = {_sci(c0)}·e^({_sci(c1)}·x)"
    if model is CurveModel.LOGARITHMIC:
        return f"y = {_sci(c0)} {_signed(c1)}·ln(x)"
    equation = f"y = {_sci(c1)}·x {_signed(c0)}"
    if model is CurveModel.THEIL_SEN:
        equation += " (Theil-Sen)"
    return equation
