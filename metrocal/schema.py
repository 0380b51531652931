"""Define standardized column names for result DataFrames."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ResultColumns:
    """Container for standardized column labels.

    These column names are used in all result DataFrames, ensuring
    consistency between the CSV exports, the report text and the plots.

    Attributes:
        nominal: Nominal test point of the calibration session, in the
            instrument unit.

        true_value: Conventional true value predicted by the standard's value
            model from the head-corrected standard reading.

        mean_error: Mean instrument reading minus the true value. A point
            without readings reports 0 and is never compliant.

        expanded_uncertainty: Combined standard uncertainty multiplied by the
            coverage factor (k=2, about 95 % coverage). Reported to two
            significant figures with the paired value on the same decimals.

        compliance: Whether ``|mean error| + U`` stays inside the maximum
            permissible error ``range_max·accuracy_class/100``.
    """

    nominal: str = "Nominal"
    corrected_reading: str = "Corrected Standard Reading"
    true_value: str = "True Value"
    mean_error: str = "Mean Error"
    hysteresis: str = "Hysteresis"
    repeatability: str = "Repeatability"
    expanded_uncertainty: str = "Expanded Uncertainty (U)"
    u_ref: str = "U Contribution: Reference"
    u_model: str = "U Contribution: Model"
    u_res: str = "U Contribution: Resolution"
    u_rep: str = "U Contribution: Repeatability"
    u_hys: str = "U Contribution: Hysteresis"
    compliance: str = "Compliant"
