"""Hypothesis tests and the quality verdict for a fitted curve.

Every test returns a :class:`~metrocal.models.ValidationStepResult` at 95 %
confidence using the lookup tables in :mod:`metrocal.stats.tables`. A failing
test is data, never an exception: it is recorded with ``passed=False`` and
may downgrade the quality verdict.

Tests that assume normally distributed residuals are reported as not
applicable under the Theil-Sen fit, where Spearman's rank correlation takes
the place of Pearson's correlation significance.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.stats import f as f_dist
from scipy.stats import rankdata

from ..config import DEFAULT_CONFIG, EngineConfig
from ..models import AnovaResult, CurveModel, ModelQuality, ValidationStepResult
from .regression import CurveFit, fit_single
from .tables import f_critical, normal_cdf, t_critical

LOGGER = logging.getLogger(__name__)

# F statistics are reported capped at this value instead of infinity.
F_STATISTIC_CAP = 1e12

ANOVA_F_TEST = "anova_f_test"
CORRELATION_SIGNIFICANCE = "correlation_significance"
SPEARMAN_RANK = "spearman_rank"
ANDERSON_DARLING = "anderson_darling"
RESIDUAL_INDEPENDENCE = "residual_independence"
MANDEL_LINEARITY = "mandel_linearity"
DURBIN_WATSON = "durbin_watson"


def _not_applicable(name: str, statistic_name: str, detail: str) -> ValidationStepResult:
    return ValidationStepResult(
        name=name,
        passed=False,
        statistic_name=statistic_name,
        statistic=0.0,
        critical_value=0.0,
        detail=detail,
        not_applicable=True,
    )


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


def pearson_r(a: Sequence[float], b: Sequence[float]) -> float:
    """Pearson correlation coefficient; 0 when either series is constant."""
    a_arr = np.asarray(a, dtype=float)
    b_arr = np.asarray(b, dtype=float)
    da = a_arr - np.mean(a_arr)
    db = b_arr - np.mean(b_arr)
    denom = math.sqrt(float(np.sum(da**2)) * float(np.sum(db**2)))
    if denom == 0:
        return 0.0
    return float(np.clip(np.sum(da * db) / denom, -1.0, 1.0))


def correlation_t(r: float, n: int) -> float:
    """``t = |r|·sqrt(n-2)/sqrt(1-r²)`` with ``1-r²`` floored above zero."""
    if n <= 2:
        return 0.0
    return abs(r) * math.sqrt(n - 2) / math.sqrt(max(1.0 - r * r, 1e-15))


def r_squared(fit: CurveFit, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Coefficient of determination in fitting space, clipped to [0, 1].

    A constant response gives 1 when the fit reproduces it exactly, else 0.
    """
    sst = float(np.sum((fit.y_fit - np.mean(fit.y_fit)) ** 2))
    sse = fit.sse
    if sst <= config.sse_floor:
        return 1.0 if sse <= config.sse_floor else 0.0
    return float(np.clip(1.0 - sse / sst, 0.0, 1.0))


def durbin_watson(residuals: Sequence[float], sse_floor: float = DEFAULT_CONFIG.sse_floor) -> float:
    """Durbin-Watson statistic; 2.0 (no autocorrelation) for vanishing residuals."""
    e = np.asarray(residuals, dtype=float)
    sse = float(np.sum(e**2))
    if e.size < 2 or sse <= sse_floor:
        return 2.0
    return float(np.sum(np.diff(e) ** 2) / sse)


# ---------------------------------------------------------------------------
# Individual tests
# ---------------------------------------------------------------------------


def anova_table(fit: CurveFit, config: EngineConfig = DEFAULT_CONFIG) -> AnovaResult:
    """One-way regression ANOVA in fitting space.

    ``df_reg`` is the number of fitted coefficients minus the intercept. For
    families where ``SST = SSR + SSE`` does not hold exactly (Theil-Sen,
    splits) ``SSR`` is taken as ``max(SST - SSE, 0)``.
    """
    sse = fit.sse
    sst = float(np.sum((fit.y_fit - np.mean(fit.y_fit)) ** 2))
    ssr = max(sst - sse, 0.0)
    df_reg = max(fit.num_coefficients - 1, 1)
    df_res = fit.n - fit.num_coefficients
    ms_reg = ssr / df_reg
    ms_res = sse / df_res if df_res > 0 else 0.0

    if ms_res <= config.sse_floor:
        f_stat = F_STATISTIC_CAP if ms_reg > config.sse_floor else 0.0
    else:
        f_stat = min(ms_reg / ms_res, F_STATISTIC_CAP)

    p_value: Optional[float] = None
    if df_res > 0:
        p_value = float(f_dist.sf(f_stat, df_reg, df_res))

    return AnovaResult(
        sse=sse,
        ssr=ssr,
        sst=sst,
        df_reg=df_reg,
        df_res=df_res,
        ms_reg=ms_reg,
        ms_res=ms_res,
        f_statistic=f_stat,
        f_critical=f_critical(df_res, df_reg),
        p_value=p_value,
    )


def anova_f_test(anova: AnovaResult) -> ValidationStepResult:
    passed = anova.df_res > 0 and anova.f_statistic > anova.f_critical
    detail = (
        f"F({anova.df_reg}, {anova.df_res}) = {anova.f_statistic:.4g} "
        f"vs F_crit = {anova.f_critical:.4g}"
    )
    if anova.df_res <= 0:
        detail += "; no residual degrees of freedom"
    return ValidationStepResult(
        name=ANOVA_F_TEST,
        passed=passed,
        statistic_name="F",
        statistic=anova.f_statistic,
        critical_value=anova.f_critical,
        detail=detail,
    )


def correlation_significance(observed: Sequence[float], fitted: Sequence[float]) -> ValidationStepResult:
    """Significance of the correlation between observed and fitted values."""
    n = len(observed)
    r = pearson_r(observed, fitted)
    t_stat = correlation_t(r, n)
    t_crit = t_critical(n - 2)
    return ValidationStepResult(
        name=CORRELATION_SIGNIFICANCE,
        passed=t_stat > t_crit,
        statistic_name="t",
        statistic=t_stat,
        critical_value=t_crit,
        detail=f"r = {r:.6f}, df = {n - 2}",
    )


def spearman_rank(x: Sequence[float], y: Sequence[float]) -> ValidationStepResult:
    """Spearman's rho with tied values given their average rank.

    ``rho = 1 - 6·Σd²/(n(n²-1))``, tested with the same t-transform as
    Pearson's r.
    """
    n = len(x)
    d = rankdata(x, method="average") - rankdata(y, method="average")
    rho = 1.0 - 6.0 * float(np.sum(d**2)) / (n * (n * n - 1))
    rho = max(-1.0, min(1.0, rho))
    t_stat = correlation_t(rho, n)
    t_crit = t_critical(n - 2)
    return ValidationStepResult(
        name=SPEARMAN_RANK,
        passed=t_stat > t_crit,
        statistic_name="t",
        statistic=t_stat,
        critical_value=t_crit,
        detail=f"rho = {rho:.6f}, df = {n - 2}",
    )


def anderson_darling(
    residuals: Sequence[float], config: EngineConfig = DEFAULT_CONFIG
) -> ValidationStepResult:
    """Anderson-Darling normality test on standardised residuals.

    Uses the small-sample correction ``A²* = A²·(1 + 0.75/n + 2.25/n²)``;
    normality is accepted when ``A²*`` does not exceed the critical value.
    Residuals with zero spread are treated as normal.
    """
    e = np.asarray(residuals, dtype=float)
    n = e.size
    crit = config.anderson_darling_critical
    sd = float(np.std(e, ddof=1)) if n > 1 else 0.0
    if sd <= math.sqrt(config.sse_floor):
        return ValidationStepResult(
            name=ANDERSON_DARLING,
            passed=True,
            statistic_name="A²*",
            statistic=0.0,
            critical_value=crit,
            detail="Residuals have no spread",
        )

    z = np.sort((e - np.mean(e)) / sd)
    cdf = np.clip([normal_cdf(v) for v in z], 1e-12, 1.0 - 1e-12)
    i = np.arange(1, n + 1)
    a2 = -n - float(np.sum((2 * i - 1) * (np.log(cdf) + np.log(1.0 - cdf[::-1])))) / n
    a2_star = a2 * (1.0 + 0.75 / n + 2.25 / (n * n))
    return ValidationStepResult(
        name=ANDERSON_DARLING,
        passed=a2_star <= crit,
        statistic_name="A²*",
        statistic=a2_star,
        critical_value=crit,
        detail=f"A² = {a2:.4f}, n = {n}",
    )


def residual_independence(
    fitted: Sequence[float],
    residuals: Sequence[float],
    config: EngineConfig = DEFAULT_CONFIG,
) -> ValidationStepResult:
    """Residuals must not correlate with the fitted values.

    Passes when the correlation t statistic stays below the critical value.
    Residuals at rounding-noise level count as independent.
    """
    n = len(fitted)
    e = np.asarray(residuals, dtype=float)
    r = 0.0 if float(np.sum(e**2)) <= config.sse_floor else pearson_r(fitted, e)
    t_stat = correlation_t(r, n)
    t_crit = t_critical(n - 2)
    return ValidationStepResult(
        name=RESIDUAL_INDEPENDENCE,
        passed=t_stat < t_crit,
        statistic_name="t",
        statistic=t_stat,
        critical_value=t_crit,
        detail=f"r(fitted, residual) = {r:.6f}",
    )


def mandel_linearity(
    x: Sequence[float], y: Sequence[float], config: EngineConfig = DEFAULT_CONFIG
) -> ValidationStepResult:
    """Mandel's test (ISO 8466-1): is a straight line sufficient?

    ``F = (SSE_lin - SSE_quad) / (SSE_quad/(n-3))`` against ``F_crit(1, n-3)``.
    Both fits are obtained from the fitting primitives on the same data.
    """
    n = len(x)
    if n < 4:
        return _not_applicable(MANDEL_LINEARITY, "F", "Needs at least 4 points")

    sse_lin = fit_single(x, y, CurveModel.LINEAR).sse
    sse_quad = fit_single(x, y, CurveModel.POLYNOMIAL_2).sse
    df = n - 3
    crit = f_critical(df, 1)
    gain = max(sse_lin - sse_quad, 0.0)
    if sse_quad <= config.sse_floor:
        f_stat = F_STATISTIC_CAP if gain > config.sse_floor else 0.0
    else:
        f_stat = min(gain / (sse_quad / df), F_STATISTIC_CAP)
    return ValidationStepResult(
        name=MANDEL_LINEARITY,
        passed=f_stat <= crit,
        statistic_name="F",
        statistic=f_stat,
        critical_value=crit,
        detail=f"SSE_lin = {sse_lin:.4g}, SSE_quad = {sse_quad:.4g}",
    )


def durbin_watson_step(dw: float, config: EngineConfig = DEFAULT_CONFIG) -> ValidationStepResult:
    """Informational Durbin-Watson check against the configured band."""
    in_band = config.dw_lower <= dw <= config.dw_upper
    return ValidationStepResult(
        name=DURBIN_WATSON,
        passed=in_band,
        statistic_name="DW",
        statistic=dw,
        critical_value=config.dw_lower,
        detail=f"acceptable range {config.dw_lower:g} to {config.dw_upper:g}",
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def validate_fit(
    fit: CurveFit, config: EngineConfig = DEFAULT_CONFIG
) -> Tuple[Optional[AnovaResult], Tuple[ValidationStepResult, ...]]:
    """Run every applicable test on a fit.

    Args:
        fit (CurveFit): Output of a fitting primitive with at least 3 points.
        config (EngineConfig): Thresholds and floors.

    Returns:
        tuple: ``(anova, steps)``. ``anova`` is ``None`` for Theil-Sen. Split
        families are validated on their pooled residuals.
    """
    model = fit.model
    dw = durbin_watson(fit.residuals, config.sse_floor)

    if model.is_non_parametric:
        reason = "Not applicable to the non-parametric Theil-Sen fit"
        steps = (
            _not_applicable(ANOVA_F_TEST, "F", reason),
            _not_applicable(CORRELATION_SIGNIFICANCE, "t", reason),
            spearman_rank(fit.x, fit.y),
            _not_applicable(ANDERSON_DARLING, "A²*", reason),
            _not_applicable(RESIDUAL_INDEPENDENCE, "t", reason),
            _not_applicable(MANDEL_LINEARITY, "F", reason),
            durbin_watson_step(dw, config),
        )
        return None, steps

    anova = anova_table(fit, config)
    if model.is_split:
        mandel = _not_applicable(MANDEL_LINEARITY, "F", "Not applicable to split models")
    else:
        mandel = mandel_linearity(fit.x_fit, fit.y_fit, config)

    steps = (
        anova_f_test(anova),
        correlation_significance(fit.y_fit, fit.fitted),
        _not_applicable(SPEARMAN_RANK, "t", "Parametric fit uses correlation significance"),
        anderson_darling(fit.residuals, config),
        residual_independence(fit.fitted, fit.residuals, config),
        mandel,
        durbin_watson_step(dw, config),
    )
    failed = [s.name for s in steps if not s.passed and not s.not_applicable]
    if failed:
        LOGGER.debug("%s fit failed: %s", model.value, ", ".join(failed))
    return anova, steps


# Steps whose failure downgrades the verdict. Mandel only counts for the
# straight-line family; for curved families a failure is the expected outcome.
_DOWNGRADING_STEPS = (
    CORRELATION_SIGNIFICANCE,
    SPEARMAN_RANK,
    ANDERSON_DARLING,
    RESIDUAL_INDEPENDENCE,
)

_LEVELS = (ModelQuality.EXCELLENT, ModelQuality.GOOD, ModelQuality.POOR)


def failed_downgrading_steps(
    model: CurveModel, steps: Sequence[ValidationStepResult]
) -> Tuple[str, ...]:
    names = _DOWNGRADING_STEPS + ((MANDEL_LINEARITY,) if model is CurveModel.LINEAR else ())
    return tuple(
        s.name for s in steps if s.name in names and not s.not_applicable and not s.passed
    )


def assess_quality(
    model: CurveModel,
    n: int,
    r2: float,
    is_valid: bool,
    dw: float,
    steps: Sequence[ValidationStepResult],
    config: EngineConfig = DEFAULT_CONFIG,
) -> ModelQuality:
    """Quality verdict from R², validity, Durbin-Watson and the extended tests."""
    if n < config.min_points:
        return ModelQuality.INVALID
    if is_valid and r2 > config.excellent_r2:
        level = 0
    elif is_valid and r2 > config.good_r2:
        level = 1
    else:
        level = 2
    if level == 0 and not (config.dw_lower <= dw <= config.dw_upper):
        level = 1
    level = min(level + len(failed_downgrading_steps(model, steps)), 2)
    return _LEVELS[level]
