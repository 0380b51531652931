"""
Statistical engine for calibration curves.

This subpackage fits curve families to calibration data, validates them with
classical hypothesis tests, ranks them by information criteria, and
propagates their interpolation uncertainty. All functions operate on arrays
and the dataclasses in :mod:`metrocal.models`; no unit or fluid logic is
included.

Modules:
    linalg:
        Gaussian elimination with partial pivoting for the polynomial
        normal equations.

    tables:
        Student-t and F critical-value lookup tables at 95 % confidence.

    regression:
        Fitting primitives (least squares, Theil-Sen, hard and blended
        splits), prediction and equation rendering.

    validation:
        ANOVA, correlation/Spearman significance, Anderson-Darling,
        residual independence, Mandel and Durbin-Watson; quality verdict.

    selection:
        AIC/AICc/BIC and the best-fit verdict.

    uncertainty:
        Prediction-interval uncertainty, RSS combination, GUM rounding.

    analysis:
        ``fit_curve`` orchestrator tying the above together.

Design Principle:
    This subpackage has no dependencies on physics/ or plotting/ modules.
"""

from .analysis import compare_models, fit_curve, fit_with_selection
from .regression import predict_value, render_equation
from .selection import information_criteria
from .uncertainty import (
    combine_uncertainties,
    format_value_with_uncertainty,
    interpolation_uncertainty,
    rectangular_uncertainty,
    round_value_to_uncertainty,
)

__all__ = [
    "compare_models",
    "fit_curve",
    "fit_with_selection",
    "predict_value",
    "render_equation",
    "information_criteria",
    "combine_uncertainties",
    "format_value_with_uncertainty",
    "interpolation_uncertainty",
    "rectangular_uncertainty",
    "round_value_to_uncertainty",
]
