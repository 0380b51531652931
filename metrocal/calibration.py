"""Calibration workflow: fit a reference standard and evaluate a session.

The standard's certificate points give two curves:

- the *value model*, indication to reference value, used to turn a head
  corrected standard reading into the conventional true value;
- the *uncertainty model*, reference value to standard uncertainty
  (certificate uncertainty divided by its coverage factor).

:func:`compute_results` combines both with the instrument resolution (and,
on request, the repeatability and hysteresis of the unit under test) into
the expanded uncertainty of every test point.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .config import DEFAULT_CO2_PPM, DEFAULT_CONFIG, GRAVITY_BOGOTA, EngineConfig
from .models import (
    CalibrationFluid,
    CalibrationPoint,
    CalibrationResult,
    Coefficients,
    CurveModel,
    EnvReading,
    FitResult,
    Instrument,
    ModelQuality,
    ReferenceStandard,
    RegressionResult,
    StandardCalibrationPoint,
    UncertaintyContributors,
)
from .physics.density import DEFAULT_OIL_DENSITY, fluid_density as _fluid_density
from .physics.gravity import head_correction, local_gravity
from .stats.analysis import fit_with_selection
from .stats.regression import SubModels, predict_value
from .stats.uncertainty import (
    combine_uncertainties,
    interpolation_uncertainty,
    rectangular_uncertainty,
)

LOGGER = logging.getLogger(__name__)


def fit(
    points: Iterable[StandardCalibrationPoint],
    value_model: CurveModel | str,
    uncertainty_model: CurveModel | str,
    sub_models: Optional[SubModels] = None,
    uncertainty_sub_models: Optional[SubModels] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> FitResult:
    """Fit the value and uncertainty models of a reference standard.

    Args:
        points (Iterable[StandardCalibrationPoint]): Certificate points, in
            any order.
        value_model (CurveModel | str): Family for indication to reference
            value.
        uncertainty_model (CurveModel | str): Family for reference value to
            standard uncertainty.
        sub_models (tuple | None): Segment families when ``value_model`` is
            ``piecewise_mixed``.
        uncertainty_sub_models (tuple | None): Segment families when
            ``uncertainty_model`` is ``piecewise_mixed``.
        config (EngineConfig): Engine thresholds.

    Returns:
        FitResult: Both regressions, each with its best-fit verdict. The
        input points are not modified.
    """
    ordered = sorted(points, key=lambda p: p.indication)
    indications = [p.indication for p in ordered]
    references = [p.reference_value for p in ordered]
    std_uncertainties = [p.standard_uncertainty for p in ordered]

    value_reg = fit_with_selection(indications, references, value_model, sub_models, config)
    unc_reg = fit_with_selection(
        references, std_uncertainties, uncertainty_model, uncertainty_sub_models, config
    )
    LOGGER.info(
        "Standard fitted: value model %s (%s), uncertainty model %s (%s).",
        value_reg.model.value,
        value_reg.model_quality.value,
        unc_reg.model.value,
        unc_reg.model_quality.value,
    )
    return FitResult(value_regression=value_reg, uncertainty_regression=unc_reg)


def predict(x: float, model: CurveModel | str, coefficients: Coefficients | Sequence[float]) -> float:
    """Evaluate a fitted family at ``x``; see :func:`~metrocal.stats.regression.predict_value`."""
    return predict_value(x, model, coefficients)


def uncertainty_at(x: float, result: RegressionResult) -> float:
    """Interpolation uncertainty of a fitted result at ``x``."""
    return interpolation_uncertainty(x, result)


def point_statistics(point: CalibrationPoint) -> Tuple[Optional[float], float, float]:
    """Mean reading, hysteresis and repeatability of one test point.

    Hysteresis is the largest ``|up - down|`` over the cycles that have both
    directions; repeatability is the largest ``|run1 - run2|`` over the
    directions measured in both cycles. Missing pairs contribute nothing.

    Returns:
        tuple: ``(mean, hysteresis, repeatability)``; ``mean`` is ``None``
        when the point has no readings.
    """
    readings = point.readings
    mean = float(np.mean(readings)) if readings else None

    def _spread(pairs: Iterable[Tuple[Optional[float], Optional[float]]]) -> float:
        gaps = [abs(a - b) for a, b in pairs if a is not None and b is not None]
        return float(max(gaps)) if gaps else 0.0

    hysteresis = _spread(
        [(point.run1_up, point.run1_down), (point.run2_up, point.run2_down)]
    )
    repeatability = _spread(
        [(point.run1_up, point.run2_up), (point.run1_down, point.run2_down)]
    )
    return mean, hysteresis, repeatability


def compute_results(
    points: Sequence[CalibrationPoint],
    instrument: Instrument,
    standard: ReferenceStandard,
    fluid_density: float,
    height_diff: float,
    gravity: float = GRAVITY_BOGOTA,
    include_type_a: bool = False,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[CalibrationResult]:
    """Compute the calibration result of every test point in a session.

    Args:
        points (Sequence[CalibrationPoint]): Session test points.
        instrument (Instrument): Unit under test.
        standard (ReferenceStandard): Reference standard; its cached
            regressions are used.
        fluid_density (float): Density of the transmitting fluid in kg/m^3.
        height_diff (float): Height of the instrument reference level above
            the standard's, in cm.
        gravity (float): Local gravity in m/s^2.
        include_type_a (bool): Add repeatability and hysteresis (as
            rectangular terms) to the uncertainty budget.
        config (EngineConfig): Supplies the coverage factor.

    Returns:
        list[CalibrationResult]: One result per point, in input order.

    Note:
        The head correction ``ρ·g·h`` is added to the standard reading before
        the value model is queried. It is zero for non-pressure units.
    """
    fitted = standard.regressions
    value_reg = fitted.value_regression
    unc_reg = fitted.uncertainty_regression
    if value_reg.model_quality is ModelQuality.INVALID:
        LOGGER.warning(
            "Value model of standard '%s' is INVALID; true values fall back to zero coefficients.",
            standard.name,
        )

    k = config.coverage_factor
    head = head_correction(fluid_density, gravity, height_diff, standard.unit)
    mpe = instrument.range_max * instrument.accuracy_class / 100.0
    u_res = rectangular_uncertainty(instrument.resolution)

    results: List[CalibrationResult] = []
    for point in points:
        corrected = point.standard_reading + head
        true_value = predict_value(corrected, value_reg.model, value_reg.coefficients)
        u_model = interpolation_uncertainty(corrected, value_reg)
        u_ref_std = abs(predict_value(true_value, unc_reg.model, unc_reg.coefficients))
        u_ref = combine_uncertainties([u_ref_std, u_model])

        mean, hysteresis, repeatability = point_statistics(point)
        if mean is None:
            LOGGER.warning("Test point %g has no readings; error set to 0.", point.nominal)
            mean_error = 0.0
        else:
            mean_error = mean - true_value

        terms = [u_ref, u_res]
        u_rep = u_hys = 0.0
        if include_type_a:
            u_rep = rectangular_uncertainty(repeatability)
            u_hys = rectangular_uncertainty(hysteresis)
            terms += [u_rep, u_hys]
        expanded = k * combine_uncertainties(terms)

        results.append(
            CalibrationResult(
                nominal=point.nominal,
                corrected_reading=corrected,
                true_value=true_value,
                mean_error=mean_error,
                hysteresis=hysteresis,
                repeatability=repeatability,
                expanded_uncertainty=expanded,
                uncertainty_contributors=UncertaintyContributors(
                    ref=k * u_ref,
                    model=k * u_model,
                    res=k * u_res,
                    rep=k * u_rep,
                    hys=k * u_hys,
                ),
                compliance=mean is not None and abs(mean_error) + expanded < mpe,
            )
        )
    LOGGER.info(
        "Computed %d result(s); %d compliant.",
        len(results),
        sum(r.compliance for r in results),
    )
    return results


def average_environment(readings: Sequence[EnvReading]) -> EnvReading:
    """Mean of the start/middle/end laboratory conditions."""
    if not readings:
        raise ValueError("At least one environment reading is required.")
    return EnvReading(
        temp=float(np.mean([r.temp for r in readings])),
        humidity=float(np.mean([r.humidity for r in readings])),
        pressure=float(np.mean([r.pressure for r in readings])),
    )


def resolve_fluid_density(
    fluid: CalibrationFluid | str,
    env_readings: Sequence[EnvReading],
    co2_ppm: float = DEFAULT_CO2_PPM,
    oil_density: float = DEFAULT_OIL_DENSITY,
) -> float:
    """Fluid density from the averaged session environment.

    ``EnvReading.pressure`` is the barometric pressure in hPa.
    """
    env = average_environment(env_readings)
    density = _fluid_density(
        fluid,
        env.temp,
        pressure_hpa=env.pressure,
        humidity_rel=env.humidity,
        co2_ppm=co2_ppm,
        oil_density=oil_density,
    )
    LOGGER.debug("Fluid %s density %.5f kg/m3 at %.2f °C.", CalibrationFluid(fluid).value, density, env.temp)
    return density


def resolve_gravity(latitude: Optional[float] = None, height: Optional[float] = None) -> float:
    """Local gravity for a site, or the laboratory default when unknown."""
    if latitude is None:
        return GRAVITY_BOGOTA
    return local_gravity(latitude, height or 0.0)


def nominal_test_points(range_min: float, range_max: float, count: int = 6) -> Tuple[float, ...]:
    """Evenly spaced nominal test points covering the instrument range."""
    if count < 2:
        raise ValueError(f"count must be >= 2, got {count}")
    if range_max <= range_min:
        raise ValueError(f"range_max must exceed range_min, got {range_min} to {range_max}")
    return tuple(float(v) for v in np.linspace(range_min, range_max, count))
