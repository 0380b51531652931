"""Engine-wide constants and thresholds.

Every statistical threshold used by the regression, validation and selection
modules is collected here so certificate-affecting numbers live in one place.
"""

from __future__ import annotations

from dataclasses import dataclass

# Local gravity of the reference laboratory (Bogotá), m/s^2.
GRAVITY_BOGOTA: float = 9.7739

DEFAULT_CO2_PPM: float = 400.0
DEFAULT_COVERAGE_FACTOR: float = 2.0

# Returned for AIC/AICc/BIC when a criterion is undefined (n < 3 or no
# residual degrees of freedom left for the AICc correction).
CRITERION_SENTINEL: float = 9999.0


@dataclass(frozen=True)
class EngineConfig:
    """Thresholds governing fitting, validation and model selection.

    Attributes:
        coverage_factor: Coverage factor ``k`` applied to the combined standard
            uncertainty (k=2, about 95 % coverage for a normal distribution).
        min_points: Minimum points surviving domain filtering before a fit is
            attempted.
        min_split_points: Minimum points for either split family; below this
            the split falls back to a single-segment fit.
        min_segment_points: Points required on each side of a hard-split
            breakpoint.
        sse_floor: Lower clamp on SSE before taking logarithms.
        aicc_delta: Largest ΔAICc for which a model is still called optimal.
        best_fit_r2: R² a model must exceed to be flagged best fit.
        excellent_r2: R² threshold for an EXCELLENT verdict.
        good_r2: R² threshold for a GOOD verdict.
        dw_lower: Durbin-Watson values below this flag autocorrelation.
        dw_upper: Durbin-Watson values above this flag autocorrelation.
        anderson_darling_critical: A²* critical value at 95 %.
    """

    coverage_factor: float = DEFAULT_COVERAGE_FACTOR
    min_points: int = 3
    min_split_points: int = 6
    min_segment_points: int = 3
    sse_floor: float = 1e-15
    aicc_delta: float = 4.0
    best_fit_r2: float = 0.95
    excellent_r2: float = 0.99
    good_r2: float = 0.95
    dw_lower: float = 1.0
    dw_upper: float = 3.0
    anderson_darling_critical: float = 0.752


DEFAULT_CONFIG = EngineConfig()
