"""Centralized plotting style, labels and save helpers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from matplotlib.ticker import MaxNLocator

OUTPUT_FORMATS: tuple[str, ...] = ("png", "pdf")
FIGURE_DPI = 300


@dataclass(frozen=True)
class StyleConfig:
    BASE_FONTSIZE: float = 11.0
    TITLE_FONTSIZE: float = 13.0
    LABEL_FONTSIZE: float = 11.0
    TICK_FONTSIZE: float = 10.0
    LEGEND_FONTSIZE: float = 10.0
    LINEWIDTH: float = 1.8
    LINEWIDTH_THIN: float = 1.0
    MARKERSIZE: float = 6.0
    ALPHA_BAND: float = 0.18
    GRID_ALPHA: float = 0.20
    FIGSIZE_SINGLE: tuple[float, float] = (7.0, 4.2)


STYLE = StyleConfig()

COLORS = {
    "data": "#1f77b4",
    "fit": "#222222",
    "band": "#1f77b4",
    "zero": "#888888",
}


def apply_global_style(font_scale: float = 1.0) -> None:
    """Apply the global Matplotlib style, scaled by ``font_scale``."""
    scale = float(font_scale)
    plt.rcParams.update(
        {
            "font.size": STYLE.BASE_FONTSIZE * scale,
            "axes.titlesize": STYLE.TITLE_FONTSIZE * scale,
            "axes.labelsize": STYLE.LABEL_FONTSIZE * scale,
            "xtick.labelsize": STYLE.TICK_FONTSIZE * scale,
            "ytick.labelsize": STYLE.TICK_FONTSIZE * scale,
            "legend.fontsize": STYLE.LEGEND_FONTSIZE * scale,
            "mathtext.default": "regular",
            "axes.linewidth": STYLE.LINEWIDTH_THIN,
            "axes.spines.top": False,
            "axes.spines.right": False,
            "legend.frameon": False,
            "lines.linewidth": STYLE.LINEWIDTH,
            "lines.markersize": STYLE.MARKERSIZE,
            "savefig.dpi": FIGURE_DPI,
            "savefig.bbox": "tight",
        }
    )


def clean_axis(ax: Axes, *, grid_axis: str = "y", nbins: int = 6) -> None:
    """Apply consistent ticks, grid, and spine formatting to one axis."""
    ax.xaxis.set_major_locator(MaxNLocator(nbins=nbins, min_n_ticks=4))
    ax.yaxis.set_major_locator(MaxNLocator(nbins=nbins, min_n_ticks=4))
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.grid(False)
    if grid_axis in {"x", "y", "both"}:
        ax.grid(True, axis=grid_axis, alpha=STYLE.GRID_ALPHA, linestyle=":", linewidth=0.7)


def axis_label(quantity: str, unit: str = "") -> str:
    return f"{quantity} / {unit}" if unit else quantity


def save_figure(
    fig: Figure,
    savepath_base: str | Path,
    formats: Sequence[str] = OUTPUT_FORMATS,
    dpi: int = FIGURE_DPI,
) -> Path:
    """Save a figure to multiple formats using one extensionless base path."""
    base = Path(savepath_base)
    base.parent.mkdir(parents=True, exist_ok=True)
    for ext in formats:
        fig.savefig(str(base.with_suffix(f".{ext}")), dpi=dpi if ext == "png" else None)
    return base.with_suffix(f".{formats[0]}")
