"""Format result tables and validation reports for calibration certificates.

This module is used after the numerical work to enforce consistent value and
uncertainty presentation (GUM: uncertainty to two significant figures, value
on the same decimal place) in exported tables and report text.
"""

from __future__ import annotations

import os
from dataclasses import astuple
from typing import Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from .config import DEFAULT_CONFIG, EngineConfig
from .models import CalibrationResult, CurveModel, RegressionResult
from .schema import ResultColumns
from .stats.uncertainty import format_at_digits, format_value_with_uncertainty, gum_rounding_digits

COLUMNS = ResultColumns()


def uncertainty_decimal_places(uncertainty: float) -> int:
    """Decimal places a value paired with ``uncertainty`` is printed with.

    Uncertainties of 100 and above round the value to tens or coarser, which
    needs no decimals; see :func:`format_value_to_uncertainty_decimals`.

    Raises:
        ValueError: If uncertainty is non-finite or non-positive.
    """
    return max(0, gum_rounding_digits(uncertainty))


def format_value_to_uncertainty_decimals(value: float, uncertainty: float) -> str:
    """Format a value at the rounding position implied by its uncertainty.

    Note:
        Intended for reporting/export only; original numeric values should be kept
        for downstream calculations.
    """
    return format_at_digits(value, gum_rounding_digits(uncertainty))


def relative_uncertainty_percent(value: float, uncertainty: float) -> float:
    """Uncertainty as a percentage of ``|value|``; NaN when ``value`` is 0."""
    v = float(value)
    u = float(uncertainty)
    if not np.isfinite(v) or not np.isfinite(u) or v == 0:
        return np.nan
    return float(abs(u / v) * 100.0)


def _check_reported_pairs(df: pd.DataFrame, pairs: Sequence[tuple[str, str]]) -> None:
    """Every reported value needs a positive expanded uncertainty on its row."""
    absent = [col for pair in pairs for col in pair if col not in df.columns]
    if absent:
        raise KeyError(f"Cannot format certificate columns; missing {sorted(set(absent))}.")

    for value_col, unc_col in pairs:
        has_value = pd.to_numeric(df[value_col], errors="coerce").notna()
        u = pd.to_numeric(df[unc_col], errors="coerce")
        unusable = has_value & ~(np.isfinite(u) & (u > 0))
        if unusable.any():
            raise ValueError(
                f"'{value_col}' has {int(unusable.sum())} value(s) without a positive "
                f"'{unc_col}' (first rows {list(df.index[unusable][:5])})."
            )


def _reported_text(values: pd.Series, uncs: pd.Series) -> list[str]:
    return [
        format_at_digits(v, gum_rounding_digits(u)) if np.isfinite(v) and np.isfinite(u) and u > 0 else ""
        for v, u in zip(values, uncs)
    ]


def add_formatted_reporting_columns(
    df: pd.DataFrame,
    value_uncertainty_pairs: Iterable[tuple[str, str]],
    suffix: str = " (reported)",
) -> pd.DataFrame:
    """Add certificate-ready string columns for values and uncertainties.

    Args:
        df (pandas.DataFrame): Input numeric table.
        value_uncertainty_pairs (Iterable[tuple[str, str]]): Sequence of
            ``(value_column, uncertainty_column)`` pairs to format, e.g.
            the true value and mean error against the expanded uncertainty.
        suffix (str, optional): Suffix appended to generated reporting columns.
            Defaults to ``" (reported)"``.

    Returns:
        pandas.DataFrame: Copy of ``df`` with formatted string columns added.
        The uncertainty column is reported once even when it pairs with
        several values.
    """
    pairs = list(value_uncertainty_pairs)
    _check_reported_pairs(df, pairs)

    out = df.copy()
    for value_col, unc_col in pairs:
        uncs = pd.to_numeric(out[unc_col], errors="coerce")
        out[f"{value_col}{suffix}"] = _reported_text(pd.to_numeric(out[value_col], errors="coerce"), uncs)
        if f"{unc_col}{suffix}" not in out.columns:
            out[f"{unc_col}{suffix}"] = _reported_text(uncs, uncs)
    return out


def create_results_dataframe(results: Sequence[CalibrationResult]) -> pd.DataFrame:
    """Tabulate per-point calibration results, one row per test point."""
    rows = []
    for res in results:
        contrib = res.uncertainty_contributors
        rows.append(
            {
                COLUMNS.nominal: res.nominal,
                COLUMNS.corrected_reading: res.corrected_reading,
                COLUMNS.true_value: res.true_value,
                COLUMNS.mean_error: res.mean_error,
                COLUMNS.hysteresis: res.hysteresis,
                COLUMNS.repeatability: res.repeatability,
                COLUMNS.expanded_uncertainty: res.expanded_uncertainty,
                COLUMNS.u_ref: contrib.ref,
                COLUMNS.u_model: contrib.model,
                COLUMNS.u_res: contrib.res,
                COLUMNS.u_rep: contrib.rep,
                COLUMNS.u_hys: contrib.hys,
                COLUMNS.compliance: bool(res.compliance),
            }
        )
    return pd.DataFrame(rows, columns=list(astuple(COLUMNS)))


def create_model_comparison_dataframe(candidates: Mapping[CurveModel, RegressionResult]) -> pd.DataFrame:
    """One row per candidate family with its fit statistics, sorted by AICc."""
    rows = []
    for requested, res in candidates.items():
        rows.append(
            {
                "Requested Model": CurveModel(requested).value,
                "Fitted Model": res.model.value,
                "n": res.n,
                "k": res.num_params,
                "R²": res.r_squared,
                "Residual Std Dev": res.residual_std_dev,
                "AIC": res.aic,
                "AICc": res.aicc,
                "BIC": res.bic,
                "Durbin-Watson": res.durbin_watson,
                "Quality": res.model_quality.value,
                "Equation": res.equation,
            }
        )
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values("AICc", kind="mergesort").reset_index(drop=True)
    return df


def create_validation_dataframe(result: RegressionResult) -> pd.DataFrame:
    """Tabulate the validation steps of one regression."""
    rows = [
        {
            "Test": step.name,
            "Statistic": step.statistic_name,
            "Value": step.statistic,
            "Critical Value": step.critical_value,
            "Result": "N/A" if step.not_applicable else ("PASS" if step.passed else "FAIL"),
            "Detail": step.detail,
        }
        for step in result.validation
    ]
    return pd.DataFrame(rows, columns=["Test", "Statistic", "Value", "Critical Value", "Result", "Detail"])


def render_validation_report(
    result: RegressionResult,
    title: str = "Regression validation",
    config: EngineConfig = DEFAULT_CONFIG,
) -> str:
    """Plain-text validation report for one fitted model."""
    lines = [title, "=" * len(title)]
    lines.append(f"Model:      {result.model.label} ({result.model.value})")
    lines.append(f"Equation:   {result.equation}")
    lines.append(f"Points:     {result.n}")
    lines.append(f"Quality:    {result.model_quality.value}")
    if result.n < config.min_points:
        lines.append(f"Note:       {result.recommendation}")
        return "\n".join(lines) + "\n"

    lines.append(f"R²:         {result.r_squared:.6f}")
    lines.append(f"s_res:      {result.residual_std_dev:.4e}")
    lines.append(f"AIC/AICc/BIC: {result.aic:.3f} / {result.aicc:.3f} / {result.bic:.3f}")
    if result.anova is not None:
        a = result.anova
        p_txt = f", p = {a.p_value:.3g}" if a.p_value is not None else ""
        verdict = "significant" if result.is_parametric_valid else "not significant"
        lines.append(
            f"F-test:     F({a.df_reg}, {a.df_res}) = {a.f_statistic:.4g} "
            f"(critical {a.f_critical:.4g}{p_txt}), {verdict}"
        )
    dw_flag = "" if config.dw_lower <= result.durbin_watson <= config.dw_upper else " (autocorrelation suspected)"
    lines.append(f"Durbin-Watson: {result.durbin_watson:.3f}{dw_flag}")
    lines.append("")
    lines.append("Extended validation:")
    for step in result.validation:
        status = "N/A " if step.not_applicable else ("PASS" if step.passed else "FAIL")
        if step.not_applicable:
            lines.append(f"  [{status}] {step.name}: {step.detail}")
        else:
            lines.append(
                f"  [{status}] {step.name}: {step.statistic_name} = {step.statistic:.4g} "
                f"(critical {step.critical_value:.4g}) {step.detail}".rstrip()
            )
    if result.is_best_fit is not None:
        lines.append("")
        lines.append(f"Best fit:   {'yes' if result.is_best_fit else 'no'}")
    lines.append(f"Recommendation: {result.recommendation}")
    return "\n".join(lines) + "\n"


def format_result_line(result: CalibrationResult, unit: str = "") -> str:
    """One-line summary of a test point, e.g. for console output."""
    error_txt = format_value_with_uncertainty(result.mean_error, result.expanded_uncertainty, unit)
    status = "OK" if result.compliance else "NOT COMPLIANT"
    nominal_txt = f"{result.nominal:g} {unit}".strip()
    return f"{nominal_txt}: error {error_txt} [{status}]"


def write_report_file(text: str, output_dir: str, stem: str) -> str:
    """Write report text to ``<output_dir>/<stem>.txt`` and return the path."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, f"{stem}.txt")
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text.strip() + "\n")
    return path
