"""
Uncertainty propagation following the GUM.

Covers the prediction-interval (interpolation) uncertainty of a fitted curve,
root-sum-of-squares combination of standard uncertainties, the rectangular
resolution term, and GUM rounding of a value to its expanded uncertainty.
"""

from __future__ import annotations

import math
from typing import Iterable, Tuple

from ..models import (
    Coefficients,
    CurveModel,
    ModelQuality,
    RegressionResult,
    SegmentFit,
    SplitCoeffs,
)
from .regression import predict_value, x_to_fit_space
from .tables import t_critical

_LOG_X_FAMILIES = (CurveModel.POWER, CurveModel.LOGARITHMIC)


def prediction_interval(
    x_t: float, s_res: float, n: int, x_bar: float, sxx: float, df: int
) -> float:
    """``t(df)·s·sqrt(1 + 1/n + (x-x̄)²/Sxx)`` in the family's fitting space.

    The leverage term is dropped when ``Sxx`` is zero. Returns 0 when there is
    nothing to propagate.
    """
    if n <= 0 or s_res <= 0 or not math.isfinite(s_res):
        return 0.0
    leverage = (x_t - x_bar) ** 2 / sxx if sxx > 0 else 0.0
    value = t_critical(df if df > 0 else 1) * s_res * math.sqrt(1.0 + 1.0 / n + leverage)
    return value if math.isfinite(value) else 0.0


def _family_uncertainty(
    x: float,
    model: CurveModel,
    coefficients: Coefficients,
    s_res: float,
    n: int,
    x_bar: float,
    sxx: float,
    df: int,
) -> float:
    # ln(x) is undefined below the fitted domain of these families
    if model in _LOG_X_FAMILIES and float(x) <= 0:
        return 2.0 * s_res
    u = prediction_interval(x_to_fit_space(model, x), s_res, n, x_bar, sxx, df)
    if model.is_relative:
        u *= abs(predict_value(x, model, coefficients))
    return u if math.isfinite(u) else 0.0


def _segment_uncertainty(x: float, seg: SegmentFit) -> float:
    return _family_uncertainty(
        x, seg.model, seg.coefficients, seg.residual_std_dev, seg.n, seg.x_bar, seg.sxx, seg.df_res
    )


def interpolation_uncertainty(x: float, result: RegressionResult) -> float:
    """Interpolation uncertainty of ``result`` at ``x`` in original units.

    Power and exponential families propagate relatively (the interval in log
    space is scaled by the predicted magnitude). Power and logarithmic
    families have no interval at ``x <= 0`` and report ``2·s_res`` there.
    Split families use each segment's own statistics and blend them with the
    same weight as the value prediction, so the uncertainty is continuous
    across the overlap band.

    Args:
        x (float): Query point.
        result (RegressionResult): A fitted result.

    Returns:
        float: Finite, non-negative uncertainty; 0 for an INVALID result.
    """
    if result.model_quality is ModelQuality.INVALID or result.n < 3:
        return 0.0
    coeffs = result.coefficients
    if isinstance(coeffs, SplitCoeffs):
        alpha = coeffs.blend_weight(float(x))
        u_low = _segment_uncertainty(x, coeffs.low)
        u_high = _segment_uncertainty(x, coeffs.high)
        return (1.0 - alpha) * u_low + alpha * u_high

    model = result.model
    df = result.n - 2 if model is CurveModel.THEIL_SEN else result.df_res
    return _family_uncertainty(
        x, model, coeffs, result.residual_std_dev, result.n, result.x_bar, result.sxx, df
    )


def combine_uncertainties(terms: Iterable[float], method: str = "quadrature") -> float:
    """
    Combine standard uncertainties using a named method.

    method:
      - "quadrature": sqrt(sum of squares), the GUM law for uncorrelated inputs
      - "worst_case": sum of absolute values
    """
    vals = [abs(float(t)) for t in terms if math.isfinite(t)]
    if method == "quadrature":
        return float(math.sqrt(sum(v**2 for v in vals)))
    if method != "worst_case":
        raise ValueError("method must be 'quadrature' or 'worst_case'")
    return float(sum(vals))


def rectangular_uncertainty(full_width: float) -> float:
    """Standard uncertainty of a rectangular distribution of full width ``a``."""
    return abs(float(full_width)) / math.sqrt(12.0)


def gum_rounding_digits(uncertainty: float) -> int:
    """Decimal position that leaves ``uncertainty`` with two significant figures.

    The result is the ``ndigits`` argument of :func:`round`, so it is negative
    when the uncertainty is 100 or more (U = 123 rounds to tens).

    Raises:
        ValueError: If the uncertainty is zero or non-finite.
    """
    u = abs(float(uncertainty))
    if not math.isfinite(u) or u == 0:
        raise ValueError(f"Uncertainty must be finite and > 0, got {uncertainty!r}")
    exponent = math.floor(math.log10(u))
    ndigits = 1 - exponent
    # 9.96 rounds up to 10 and would show three figures
    if round(u, ndigits) >= 10 ** (exponent + 1):
        ndigits -= 1
    return ndigits


def format_at_digits(value: float, ndigits: int) -> str:
    """Round ``value`` at ``ndigits`` and print it without spurious decimals."""
    return f"{round(float(value), ndigits):.{max(ndigits, 0)}f}"


def round_value_to_uncertainty(value: float, uncertainty: float) -> Tuple[float, float]:
    """Certificate rounding: U to two significant figures, value to match.

    A zero or non-finite uncertainty leaves both numbers untouched.
    """
    u = abs(float(uncertainty))
    if not math.isfinite(u) or u == 0:
        return float(value), float(uncertainty)
    ndigits = gum_rounding_digits(u)
    return float(round(float(value), ndigits)), float(round(u, ndigits))


def format_value_with_uncertainty(value: float, uncertainty: float, unit: str = "") -> str:
    """``"value ± U unit"`` as printed on a certificate line."""
    u = abs(float(uncertainty))
    if math.isfinite(u) and u > 0:
        ndigits = gum_rounding_digits(u)
        text = f"{format_at_digits(value, ndigits)} ± {format_at_digits(u, ndigits)}"
    else:
        text = f"{float(value):.6g} ± {u:.6g}"
    return f"{text} {unit}".rstrip()
