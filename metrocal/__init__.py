"""
A Python package for calibration-laboratory curve fitting and uncertainty.

Fits a reference standard's correction model, validates it statistically,
ranks it by information criteria and propagates a GUM uncertainty budget to
every test point of a calibration session.

Modules:
    - models: Curve families, coefficient variants and result dataclasses.
    - stats: Regression engine, validation tests, model selection and
      interpolation uncertainty.
    - physics: Fluid density and local gravity for the head correction.
    - calibration: Standard fitting and per-point result computation.
    - checks: Intermediate checks (SPC) on reference standards.
    - data_processing: Loads certificate and session points from CSV files.
    - reporting / output: Result tables, validation reports and CSV export.
    - plotting: Calibration curve and residual figures.
"""

__version__ = "1.0.0"

from .calibration import (
    compute_results,
    fit,
    nominal_test_points,
    predict,
    resolve_fluid_density,
    resolve_gravity,
    uncertainty_at,
)
from .config import DEFAULT_CONFIG, GRAVITY_BOGOTA, EngineConfig
from .data_processing import load_session_points, load_standard_points
from .models import (
    CalibrationPoint,
    CalibrationResult,
    CurveModel,
    FitResult,
    Instrument,
    ModelQuality,
    ReferenceStandard,
    RegressionResult,
    StandardCalibrationPoint,
)
from .stats import compare_models, fit_curve, fit_with_selection

__all__ = [
    # Engine
    "fit_curve",
    "fit_with_selection",
    "compare_models",
    # Calibration workflow
    "fit",
    "predict",
    "uncertainty_at",
    "compute_results",
    "resolve_fluid_density",
    "resolve_gravity",
    "nominal_test_points",
    # Data
    "load_standard_points",
    "load_session_points",
    # Model
    "CalibrationPoint",
    "CalibrationResult",
    "CurveModel",
    "FitResult",
    "Instrument",
    "ModelQuality",
    "ReferenceStandard",
    "RegressionResult",
    "StandardCalibrationPoint",
    # Configuration
    "DEFAULT_CONFIG",
    "EngineConfig",
    "GRAVITY_BOGOTA",
]
