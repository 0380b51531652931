"""
Plotting utilities for calibration curves.

All plotting functions accept precomputed regression results and do not fit
anything themselves.

Modules:
    curve_plots:
        Calibration curve with its interpolation-uncertainty band, and the
        residual plot used to judge the fit.

    style:
        Shared Matplotlib style and save helpers.
"""

from .curve_plots import plot_calibration_curve, plot_residuals
from .style import apply_global_style

__all__ = ["plot_calibration_curve", "plot_residuals", "apply_global_style"]
