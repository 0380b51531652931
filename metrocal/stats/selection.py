"""Information criteria and the best-fit verdict."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Mapping, Tuple

from ..config import CRITERION_SENTINEL, DEFAULT_CONFIG, EngineConfig
from ..models import CurveModel, ModelQuality, RegressionResult

LOGGER = logging.getLogger(__name__)

# Families whose AICc values are compared against each other.
REFERENCE_MODELS: Tuple[CurveModel, ...] = (
    CurveModel.LINEAR,
    CurveModel.POLYNOMIAL_2,
    CurveModel.POLYNOMIAL_3,
    CurveModel.PIECEWISE_LINEAR,
)

# No AICc baseline comparable with the reference set.
EXEMPT_MODELS: Tuple[CurveModel, ...] = (
    CurveModel.THEIL_SEN,
    CurveModel.PIECEWISE_MIXED,
)


def information_criteria(
    n: int, k: int, sse: float, config: EngineConfig = DEFAULT_CONFIG
) -> Tuple[float, float, float]:
    """Return ``(AIC, AICc, BIC)`` for a least-squares fit.

    Args:
        n (int): Number of points used by the fit.
        k (int): Parameter count including the variance term.
        sse (float): Residual sum of squares, floored at ``config.sse_floor``.
        config (EngineConfig): Floor and sentinel configuration.

    Returns:
        tuple[float, float, float]: The three criteria. AICc is the sentinel
        ``CRITERION_SENTINEL`` when ``n - k - 1 <= 0``; all three are the
        sentinel when ``n <= 0``.
    """
    if n <= 0:
        return CRITERION_SENTINEL, CRITERION_SENTINEL, CRITERION_SENTINEL
    log_term = n * math.log(max(float(sse), config.sse_floor) / n)
    aic = log_term + 2 * k
    bic = log_term + k * math.log(n)
    denom = n - k - 1
    aicc = aic + 2 * k * (k + 1) / denom if denom > 0 else CRITERION_SENTINEL
    return aic, aicc, bic


def _has_criterion(result: RegressionResult) -> bool:
    return result.model_quality is not ModelQuality.INVALID and result.aicc != CRITERION_SENTINEL


def _append(text: str, extra: str) -> str:
    return f"{text} {extra}".strip()


def best_fit_verdict(
    result: RegressionResult,
    candidates: Mapping[CurveModel, RegressionResult],
    config: EngineConfig = DEFAULT_CONFIG,
) -> RegressionResult:
    """Flag whether ``result`` is within ``config.aicc_delta`` of the best AICc.

    The chosen model counts as best when its AICc is within the delta of the
    minimum over ``candidates`` (and itself) and its R² exceeds
    ``config.best_fit_r2``. Exempt families keep ``is_best_fit=None``.

    Returns:
        RegressionResult: A new result; ``result`` is left untouched.
    """
    if result.model in EXEMPT_MODELS:
        return replace(
            result,
            is_best_fit=None,
            recommendation=_append(
                result.recommendation,
                "AICc comparison does not apply to this model family.",
            ),
        )
    if not _has_criterion(result):
        return replace(
            result,
            is_best_fit=False,
            recommendation=_append(
                result.recommendation,
                "AICc is undefined for this sample size; model cannot be ranked.",
            ),
        )

    pool = [c for c in candidates.values() if _has_criterion(c)] + [result]
    best = min(pool, key=lambda c: c.aicc)
    delta = result.aicc - best.aicc
    is_best = delta <= config.aicc_delta and result.r_squared > config.best_fit_r2

    if is_best:
        note = f"Best available model (ΔAICc = {delta:.2f})."
    elif delta > config.aicc_delta:
        note = f"ΔAICc = {delta:.2f} relative to {best.model.label}; consider that model."
    else:
        note = f"R² = {result.r_squared:.4f} is below {config.best_fit_r2:g}."
    LOGGER.debug("Best-fit check for %s: delta=%.3f best=%s", result.model.value, delta, best.model.value)
    return replace(
        result,
        is_best_fit=is_best,
        recommendation=_append(result.recommendation, note),
    )
