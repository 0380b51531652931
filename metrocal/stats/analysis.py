"""Regression orchestration: fit, validate, score and rank a curve family.

:func:`fit_curve` is the single entry point that turns raw ``(x, y)`` pairs
into a fully populated :class:`~metrocal.models.RegressionResult`. It never
raises for bad data (too few points, out-of-domain values, degenerate
geometry); those conditions come back as an INVALID or downgraded result.
The only precondition is that ``x`` and ``y`` have the same length.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Sequence

import numpy as np

from ..config import CRITERION_SENTINEL, DEFAULT_CONFIG, EngineConfig
from ..models import (
    CurveModel,
    LinearCoeffs,
    ModelQuality,
    PolynomialCoeffs,
    RegressionResult,
)
from .regression import (
    SubModels,
    filter_domain,
    fit_model,
    render_equation,
    residual_std_dev,
)
from .selection import EXEMPT_MODELS, REFERENCE_MODELS, best_fit_verdict, information_criteria
from .validation import (
    assess_quality,
    durbin_watson,
    failed_downgrading_steps,
    r_squared,
    validate_fit,
)

LOGGER = logging.getLogger(__name__)


def _clean_pairs(x: Sequence[float], y: Sequence[float]) -> tuple[np.ndarray, np.ndarray]:
    x_arr = np.asarray(x, dtype=float).ravel()
    y_arr = np.asarray(y, dtype=float).ravel()
    if x_arr.shape != y_arr.shape:
        raise ValueError(
            f"x and y must have the same length, got {x_arr.size} and {y_arr.size}."
        )
    finite = np.isfinite(x_arr) & np.isfinite(y_arr)
    if not bool(finite.all()):
        LOGGER.warning("Dropped %d non-finite point(s).", int(np.sum(~finite)))
    return x_arr[finite], y_arr[finite]


def insufficient_result(model: CurveModel, n: int, config: EngineConfig = DEFAULT_CONFIG) -> RegressionResult:
    """The INVALID sentinel returned when fewer than ``min_points`` survive."""
    if model.is_polynomial:
        coefficients = PolynomialCoeffs((0.0,) * (model.num_params))
    else:
        coefficients = LinearCoeffs(0.0, 0.0)
    return RegressionResult(
        model=model,
        coefficients=coefficients,
        r_squared=0.0,
        residual_std_dev=0.0,
        equation="Insufficient data",
        n=n,
        aic=CRITERION_SENTINEL,
        aicc=CRITERION_SENTINEL,
        bic=CRITERION_SENTINEL,
        num_params=model.num_params + 1,
        is_parametric_valid=False,
        model_quality=ModelQuality.INVALID,
        recommendation=(
            f"Insufficient data: {n} usable point(s), at least "
            f"{config.min_points} are required."
        ),
        is_best_fit=False,
    )


def _recommendation(quality: ModelQuality, failed: Iterable[str]) -> str:
    failed = tuple(failed)
    if quality is ModelQuality.EXCELLENT:
        text = "Model describes the data very well."
    elif quality is ModelQuality.GOOD:
        text = "Model is acceptable."
    else:
        text = "Model is statistically weak; consider another family or more points."
    if failed:
        text += " Failed checks: " + ", ".join(failed) + "."
    return text


def fit_curve(
    x: Sequence[float],
    y: Sequence[float],
    model: CurveModel | str,
    sub_models: Optional[SubModels] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> RegressionResult:
    """Fit one curve family and return its validated result.

    Args:
        x (Sequence[float]): Independent values (standard indications).
        y (Sequence[float]): Dependent values (reference values or
            uncertainties).
        model (CurveModel | str): Requested family.
        sub_models (tuple[CurveModel, CurveModel] | None): Low/high families
            for ``piecewise_mixed``.
        config (EngineConfig): Engine thresholds.

    Returns:
        RegressionResult: Populated result. ``n`` counts the points that
        survived non-finite and domain filtering. ``is_best_fit`` is left as
        ``None``; see :func:`fit_with_selection`.

    Raises:
        ValueError: If ``x`` and ``y`` differ in length.
    """
    family = CurveModel(model)
    subs: Optional[SubModels] = None
    if sub_models is not None:
        subs = (CurveModel(sub_models[0]), CurveModel(sub_models[1]))

    x_arr, y_arr = _clean_pairs(x, y)
    x_arr, y_arr = filter_domain(x_arr, y_arr, family, subs)
    n = int(x_arr.size)
    if n < config.min_points:
        LOGGER.warning(
            "Only %d usable point(s) for %s; returning an INVALID result.", n, family.value
        )
        return insufficient_result(family, n, config)

    fit = fit_model(x_arr, y_arr, family, subs, config)
    anova, steps = validate_fit(fit, config)
    r2 = r_squared(fit, config)
    dw = durbin_watson(fit.residuals, config.sse_floor)
    aic, aicc, bic = information_criteria(fit.n, fit.k, fit.sse, config)

    if fit.model.is_non_parametric:
        is_valid = True
    else:
        is_valid = bool(steps[0].passed)

    quality = assess_quality(fit.model, fit.n, r2, is_valid, dw, steps, config)
    failed = failed_downgrading_steps(fit.model, steps)
    if not is_valid:
        failed = ("anova_f_test",) + failed

    df_res = fit.n - 2 if fit.model.is_non_parametric else fit.df_res
    result = RegressionResult(
        model=fit.model,
        coefficients=fit.coefficients,
        r_squared=r2,
        residual_std_dev=residual_std_dev(fit.sse, df_res),
        equation=render_equation(fit.model, fit.coefficients),
        n=fit.n,
        x_bar=fit.x_bar,
        sxx=fit.sxx,
        df_res=df_res,
        durbin_watson=dw,
        anova=anova,
        validation=steps,
        aic=aic,
        aicc=aicc,
        bic=bic,
        num_params=fit.k,
        is_parametric_valid=is_valid,
        model_quality=quality,
        recommendation=_recommendation(quality, failed),
        residuals=tuple(float(v) for v in fit.residuals),
        fitted=tuple(float(v) for v in fit.fitted),
    )
    LOGGER.debug(
        "Fitted %s: n=%d R2=%.6f AICc=%.4g quality=%s",
        fit.model.value,
        fit.n,
        r2,
        aicc,
        quality.value,
    )
    return result


def compare_models(
    x: Sequence[float],
    y: Sequence[float],
    models: Iterable[CurveModel] = REFERENCE_MODELS,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[CurveModel, RegressionResult]:
    """Fit every family in ``models`` to the same data, keyed by request."""
    return {CurveModel(m): fit_curve(x, y, m, config=config) for m in models}


def fit_with_selection(
    x: Sequence[float],
    y: Sequence[float],
    model: CurveModel | str,
    sub_models: Optional[SubModels] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> RegressionResult:
    """:func:`fit_curve` followed by the AICc best-fit verdict."""
    result = fit_curve(x, y, model, sub_models, config)
    if result.model_quality is ModelQuality.INVALID:
        return result
    if result.model in EXEMPT_MODELS:
        return best_fit_verdict(result, {}, config)
    candidates = compare_models(x, y, config=config)
    return best_fit_verdict(result, candidates, config)
