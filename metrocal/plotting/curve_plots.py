"""Calibration curve and residual figures for a fitted reference standard."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from ..models import ModelQuality, RegressionResult, SplitCoeffs
from ..stats.regression import predict_value
from ..stats.uncertainty import interpolation_uncertainty
from .style import COLORS, STYLE, apply_global_style, axis_label, clean_axis, save_figure

LOGGER = logging.getLogger(__name__)


def _grid(x: Sequence[float], num: int = 200) -> np.ndarray:
    x_arr = np.asarray(x, dtype=float)
    lo, hi = float(np.min(x_arr)), float(np.max(x_arr))
    if hi == lo:
        hi = lo + 1.0
    return np.linspace(lo, hi, num)


def plot_calibration_curve(
    x: Sequence[float],
    y: Sequence[float],
    result: RegressionResult,
    savepath: Optional[str | Path] = None,
    unit: str = "",
    title: Optional[str] = None,
):
    """Plot data, the fitted curve and its interpolation-uncertainty band.

    Args:
        x (Sequence[float]): Standard indications.
        y (Sequence[float]): Reference values.
        result (RegressionResult): Fit of ``y`` on ``x``.
        savepath (str | Path | None): Extensionless output path; when
            ``None`` the figure is returned unsaved.
        unit (str): Axis unit label.
        title (str | None): Figure title; defaults to the model label.

    Returns:
        matplotlib.figure.Figure: The figure. Split models also mark the
        breakpoint or the overlap band.

    Raises:
        ValueError: If ``x`` and ``y`` differ in length.
    """
    if len(x) != len(y):
        raise ValueError("x and y must have the same length")
    apply_global_style()
    fig, ax = plt.subplots(figsize=STYLE.FIGSIZE_SINGLE)
    ax.scatter(x, y, color=COLORS["data"], zorder=3, label="Certificate points")

    if result.model_quality is not ModelQuality.INVALID:
        grid = _grid(x)
        fitted = np.array([predict_value(v, result.model, result.coefficients) for v in grid])
        band = np.array([interpolation_uncertainty(v, result) for v in grid])
        ax.plot(grid, fitted, color=COLORS["fit"], label=result.model.label)
        ax.fill_between(
            grid,
            fitted - band,
            fitted + band,
            color=COLORS["band"],
            alpha=STYLE.ALPHA_BAND,
            linewidth=0,
            label="Interpolation uncertainty",
        )
        coeffs = result.coefficients
        if isinstance(coeffs, SplitCoeffs):
            if coeffs.is_blended:
                ax.axvspan(coeffs.band_start, coeffs.band_end, color=COLORS["zero"], alpha=0.1, label="Overlap band")
            else:
                ax.axvline(coeffs.boundary, color=COLORS["zero"], linestyle="--", linewidth=STYLE.LINEWIDTH_THIN, label="Breakpoint")
    else:
        LOGGER.warning("Regression is INVALID; plotting data only.")

    ax.set_xlabel(axis_label("Indication", unit))
    ax.set_ylabel(axis_label("Reference value", unit))
    ax.set_title(title or result.model.label)
    clean_axis(ax)
    ax.legend(loc="best")

    if savepath is not None:
        path = save_figure(fig, savepath)
        LOGGER.info("Saved calibration curve to %s", path)
    return fig


def plot_residuals(
    result: RegressionResult,
    x: Optional[Sequence[float]] = None,
    savepath: Optional[str | Path] = None,
):
    """Plot residuals (in fitting space) against x or against point order."""
    apply_global_style()
    fig, ax = plt.subplots(figsize=STYLE.FIGSIZE_SINGLE)
    residuals = np.asarray(result.residuals, dtype=float)
    if x is None or len(x) != residuals.size:
        xs = np.arange(1, residuals.size + 1)
        ax.set_xlabel("Point")
    else:
        xs = np.sort(np.asarray(x, dtype=float))
        ax.set_xlabel("Indication")

    ax.axhline(0.0, color=COLORS["zero"], linewidth=STYLE.LINEWIDTH_THIN)
    if residuals.size:
        ax.plot(xs, residuals, marker="o", linestyle=":", color=COLORS["data"])
        if result.residual_std_dev > 0:
            for sign in (-2.0, 2.0):
                ax.axhline(sign * result.residual_std_dev, color=COLORS["zero"], linestyle="--", linewidth=STYLE.LINEWIDTH_THIN)
    ax.set_ylabel("Residual")
    ax.set_title(f"Residuals, DW = {result.durbin_watson:.2f}")
    clean_axis(ax)

    if savepath is not None:
        path = save_figure(fig, savepath)
        LOGGER.info("Saved residual plot to %s", path)
    return fig
