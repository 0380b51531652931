"""Data model shared by the regression engine and the result calculator.

Engine outputs are frozen dataclasses: a new point set or a new model choice
produces a new result, never an in-place update. Coefficients are carried as
one variant per curve family instead of a positional vector.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from functools import cached_property
from typing import Mapping, Optional, Tuple, Union


class CurveModel(str, Enum):
    """Curve families the regression engine can fit."""

    LINEAR = "linear_pearson"
    THEIL_SEN = "linear_theil_sen"
    POLYNOMIAL_2 = "polynomial_2nd"
    POLYNOMIAL_3 = "polynomial_3rd"
    POWER = "power"
    EXPONENTIAL = "exponential"
    LOGARITHMIC = "logarithmic"
    PIECEWISE_LINEAR = "piecewise_linear"
    PIECEWISE_MIXED = "piecewise_mixed"

    @property
    def is_split(self) -> bool:
        return self in (CurveModel.PIECEWISE_LINEAR, CurveModel.PIECEWISE_MIXED)

    @property
    def is_non_parametric(self) -> bool:
        return self is CurveModel.THEIL_SEN

    @property
    def is_polynomial(self) -> bool:
        return self in (CurveModel.POLYNOMIAL_2, CurveModel.POLYNOMIAL_3)

    @property
    def is_relative(self) -> bool:
        """Families whose interpolation uncertainty is propagated relatively."""
        return self in (CurveModel.POWER, CurveModel.EXPONENTIAL)

    @property
    def num_params(self) -> int:
        """Number of fitted coefficients for single-segment families."""
        if self is CurveModel.POLYNOMIAL_2:
            return 3
        if self is CurveModel.POLYNOMIAL_3:
            return 4
        return 2

    @property
    def label(self) -> str:
        return _MODEL_LABELS[self]


_MODEL_LABELS = {
    CurveModel.LINEAR: "Linear (least squares)",
    CurveModel.THEIL_SEN: "Robust linear (Theil-Sen)",
    CurveModel.POLYNOMIAL_2: "Polynomial, 2nd order",
    CurveModel.POLYNOMIAL_3: "Polynomial, 3rd order",
    CurveModel.POWER: "Power",
    CurveModel.EXPONENTIAL: "Exponential",
    CurveModel.LOGARITHMIC: "Logarithmic",
    CurveModel.PIECEWISE_LINEAR: "Split regression (hard breakpoint)",
    CurveModel.PIECEWISE_MIXED: "Split regression (blended overlap)",
}


class ModelQuality(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    POOR = "POOR"
    INVALID = "INVALID"


class Distribution(str, Enum):
    NORMAL = "Normal"
    RECTANGULAR = "Rectangular"
    TRIANGULAR = "Triangular"
    U_SHAPED = "U-Shaped"


class CalibrationFluid(str, Enum):
    AIR = "air"
    WATER = "water"
    OIL = "oil"


class CheckStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARNING = "WARNING"


# ---------------------------------------------------------------------------
# Calibration inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CalibrationPoint:
    """One test point of a calibration session.

    ``standard_reading`` is the raw reading of the reference standard; the run
    readings are the instrument under test, upscale and downscale over up to
    two cycles.
    """

    nominal: float
    standard_reading: float
    run1_up: Optional[float] = None
    run1_down: Optional[float] = None
    run2_up: Optional[float] = None
    run2_down: Optional[float] = None

    @property
    def readings(self) -> Tuple[float, ...]:
        values = (self.run1_up, self.run1_down, self.run2_up, self.run2_down)
        return tuple(float(v) for v in values if v is not None and math.isfinite(v))


@dataclass(frozen=True)
class EnvReading:
    """Laboratory conditions logged at one stage of a session."""

    temp: float
    humidity: float
    pressure: float


@dataclass(frozen=True)
class StandardCalibrationPoint:
    """A point from the reference standard's own calibration certificate."""

    nominal: float
    indication: float
    reference_value: float
    uncertainty: float
    coverage_factor: float = 2.0
    confidence_level: float = 95.45
    distribution: Distribution = Distribution.NORMAL

    @property
    def standard_uncertainty(self) -> float:
        k = self.coverage_factor if self.coverage_factor else 2.0
        return float(self.uncertainty) / float(k)


# ---------------------------------------------------------------------------
# Coefficient variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LinearCoeffs:
    """Two-coefficient families.

    linear / Theil-Sen: ``y = c0 + c1*x``; power: ``y = c0*x**c1``;
    exponential: ``y = c0*exp(c1*x)``; logarithmic: ``y = c0 + c1*ln(x)``.
    """

    c0: float
    c1: float

    def as_tuple(self) -> Tuple[float, ...]:
        return (self.c0, self.c1)


@dataclass(frozen=True)
class PolynomialCoeffs:
    """Polynomial coefficients in ascending powers of x."""

    terms: Tuple[float, ...]

    @property
    def degree(self) -> int:
        return len(self.terms) - 1

    def as_tuple(self) -> Tuple[float, ...]:
        return tuple(self.terms)


@dataclass(frozen=True)
class SegmentFit:
    """One segment of a split model with the statistics its uncertainty needs.

    ``x_bar`` and ``sxx`` are expressed in the segment family's fitting space
    (for example ``ln x`` for a logarithmic segment).
    """

    model: CurveModel
    coefficients: Union[LinearCoeffs, PolynomialCoeffs]
    residual_std_dev: float
    x_bar: float
    sxx: float
    n: int
    df_res: int
    sse: float
    lower: float
    upper: float

    def as_tuple(self) -> Tuple[float, ...]:
        return self.coefficients.as_tuple()


@dataclass(frozen=True)
class SplitCoeffs:
    """Two segments joined at a breakpoint or blended across an overlap band.

    A hard split carries a zero-width band (``band_start == band_end ==
    boundary``); points at or below the boundary belong to ``low``.
    """

    low: SegmentFit
    high: SegmentFit
    boundary: float
    band_start: float
    band_end: float

    @property
    def is_blended(self) -> bool:
        return self.band_end > self.band_start

    def blend_weight(self, x: float) -> float:
        """Weight of the high segment at ``x`` (0 below the band, 1 above)."""
        if not self.is_blended:
            return 0.0 if x <= self.boundary else 1.0
        if x <= self.band_start:
            return 0.0
        if x >= self.band_end:
            return 1.0
        return (x - self.band_start) / (self.band_end - self.band_start)

    def as_tuple(self) -> Tuple[float, ...]:
        return (self.boundary,) + self.low.as_tuple() + self.high.as_tuple()


Coefficients = Union[LinearCoeffs, PolynomialCoeffs, SplitCoeffs]


# ---------------------------------------------------------------------------
# Engine outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnovaResult:
    sse: float
    ssr: float
    sst: float
    df_reg: int
    df_res: int
    ms_reg: float
    ms_res: float
    f_statistic: float
    f_critical: float
    p_value: Optional[float] = None


@dataclass(frozen=True)
class ValidationStepResult:
    """Outcome of one hypothesis test on a fitted model.

    ``not_applicable`` marks tests the model family cannot support (normality
    under a non-parametric fit, for example); such steps are neither passed
    nor failed and never affect the quality verdict.
    """

    name: str
    passed: bool
    statistic_name: str
    statistic: float
    critical_value: float
    detail: str = ""
    not_applicable: bool = False


@dataclass(frozen=True)
class SubModelDescriptor:
    model: CurveModel
    coefficients: Tuple[float, ...]
    lower: float
    upper: float


@dataclass(frozen=True)
class RegressionResult:
    """Fitted model with its statistics, validation and verdict."""

    model: CurveModel
    coefficients: Coefficients
    r_squared: float
    residual_std_dev: float
    equation: str
    n: int
    x_bar: float = 0.0
    sxx: float = 0.0
    df_res: int = 0
    durbin_watson: float = 0.0
    anova: Optional[AnovaResult] = None
    validation: Tuple[ValidationStepResult, ...] = ()
    aic: float = 0.0
    aicc: float = 0.0
    bic: float = 0.0
    num_params: int = 0
    is_parametric_valid: bool = False
    model_quality: ModelQuality = ModelQuality.INVALID
    recommendation: str = ""
    is_best_fit: Optional[bool] = None
    residuals: Tuple[float, ...] = ()
    fitted: Tuple[float, ...] = ()

    @property
    def sse(self) -> float:
        return float(sum(r * r for r in self.residuals))

    @property
    def sub_models(self) -> Optional[Tuple[SubModelDescriptor, ...]]:
        coeffs = self.coefficients
        if not isinstance(coeffs, SplitCoeffs):
            return None
        return tuple(
            SubModelDescriptor(
                model=seg.model,
                coefficients=seg.as_tuple(),
                lower=seg.lower,
                upper=seg.upper,
            )
            for seg in (coeffs.low, coeffs.high)
        )

    def step(self, name: str) -> Optional[ValidationStepResult]:
        for item in self.validation:
            if item.name == name:
                return item
        return None


@dataclass(frozen=True)
class FitResult:
    value_regression: RegressionResult
    uncertainty_regression: RegressionResult


@dataclass(frozen=True)
class UncertaintyContributors:
    """Expanded (k-scaled) contributions to a test point's uncertainty."""

    ref: float
    model: float
    res: float
    rep: float = 0.0
    hys: float = 0.0


@dataclass(frozen=True)
class CalibrationResult:
    nominal: float
    corrected_reading: float
    true_value: float
    mean_error: float
    hysteresis: float
    repeatability: float
    expanded_uncertainty: float
    uncertainty_contributors: UncertaintyContributors
    compliance: bool


# ---------------------------------------------------------------------------
# Instruments, standards and intermediate checks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Instrument:
    """Instrument under test.

    ``accuracy_class`` is the maximum permissible error in percent of
    ``range_max``.
    """

    range_min: float
    range_max: float
    resolution: float
    accuracy_class: float
    unit: str = "bar"
    manufacturer: str = ""
    model: str = ""
    serial_number: str = ""


@dataclass(frozen=True)
class CheckLimits:
    """Control limits on the drift ``mean - nominal`` of a check point."""

    ucl: float
    lcl: float


@dataclass(frozen=True)
class CheckPointResult:
    nominal: float
    readings: Tuple[float, ...]
    mean: float
    std_dev: float
    range: float


@dataclass(frozen=True)
class CheckConfig:
    check_points: Tuple[float, ...]
    limits: Mapping[float, CheckLimits] = field(default_factory=dict)


@dataclass(frozen=True)
class IntermediateCheck:
    date: date
    technician: str
    results: Tuple[CheckPointResult, ...]
    global_result: CheckStatus = CheckStatus.PASS


@dataclass(frozen=True)
class ReferenceStandard:
    """A reference standard with its certificate points and chosen models.

    The fitted value/uncertainty models are cached per instance. Changing the
    points or the model choice goes through :func:`dataclasses.replace`, which
    yields a new instance with an empty cache, so a stale fit is never seen.
    """

    name: str
    unit: str
    resolution: float
    range_min: float
    range_max: float
    calibration_points: Tuple[StandardCalibrationPoint, ...]
    value_model: CurveModel = CurveModel.LINEAR
    uncertainty_model: CurveModel = CurveModel.LINEAR
    sub_models: Optional[Tuple[CurveModel, CurveModel]] = None
    serial_number: str = ""
    certificate_number: str = ""
    calibration_date: Optional[date] = None
    expiry_date: Optional[date] = None
    check_config: Optional[CheckConfig] = field(default=None, compare=False)
    intermediate_checks: Tuple[IntermediateCheck, ...] = field(
        default=(), compare=False
    )

    @property
    def sorted_points(self) -> Tuple[StandardCalibrationPoint, ...]:
        return tuple(sorted(self.calibration_points, key=lambda p: p.indication))

    @cached_property
    def regressions(self) -> FitResult:
        from .calibration import fit

        return fit(
            self.calibration_points,
            self.value_model,
            self.uncertainty_model,
            sub_models=self.sub_models,
        )
