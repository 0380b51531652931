import math

import numpy as np
import pytest

from metrocal.models import CurveModel
from metrocal.stats.analysis import fit_curve
from metrocal.stats.uncertainty import (
    combine_uncertainties,
    format_at_digits,
    format_value_with_uncertainty,
    gum_rounding_digits,
    interpolation_uncertainty,
    prediction_interval,
    rectangular_uncertainty,
    round_value_to_uncertainty,
)


def test_interpolation_uncertainty_at_centroid(pressure_xy):
    res = fit_curve(*pressure_xy, CurveModel.LINEAR)
    s_res = math.sqrt(40e-6 / 3)
    expected = 3.182 * s_res * math.sqrt(1.0 + 1.0 / 5)
    assert math.isclose(interpolation_uncertainty(100.0, res), expected, rel_tol=1e-6)


def test_interpolation_uncertainty_grows_away_from_centroid(pressure_xy):
    res = fit_curve(*pressure_xy, CurveModel.LINEAR)
    centre = interpolation_uncertainty(100.0, res)
    assert interpolation_uncertainty(0.0, res) > centre
    assert interpolation_uncertainty(200.0, res) > centre
    assert math.isclose(interpolation_uncertainty(0.0, res), interpolation_uncertainty(200.0, res))


@pytest.mark.parametrize("model", list(CurveModel))
def test_interpolation_uncertainty_finite_and_non_negative(model):
    x = np.linspace(1.0, 12.0, 12)
    y = 2.0 + 0.4 * x + 0.05 * np.cos(2.0 * x)
    res = fit_curve(x, y, model)
    for query in (-5.0, 0.0, 1.0, 6.5, 12.0, 1e4):
        u = interpolation_uncertainty(query, res)
        assert math.isfinite(u)
        assert u >= 0.0


def test_relative_family_scales_with_prediction():
    x = np.arange(1.0, 9.0)
    y = 2.0 * x**1.5 * (1.0 + 0.01 * np.array([1, -1, 1, -1, -1, 1, -1, 1]))
    res = fit_curve(x, y, CurveModel.POWER)
    assert interpolation_uncertainty(8.0, res) > interpolation_uncertainty(1.0, res)


def test_invalid_result_has_no_interpolation_uncertainty():
    res = fit_curve([1.0, 2.0], [1.0, 2.0], CurveModel.LINEAR)
    assert interpolation_uncertainty(1.5, res) == 0.0


def test_prediction_interval_without_spread():
    assert prediction_interval(1.0, 0.0, 5, 1.0, 10.0, 3) == 0.0
    assert prediction_interval(1.0, 0.1, 5, 1.0, 0.0, 3) == pytest.approx(3.182 * 0.1 * math.sqrt(1.2))


def test_combine_uncertainties():
    assert math.isclose(combine_uncertainties([3.0, 4.0]), 5.0)
    assert math.isclose(combine_uncertainties([3.0, -4.0], method="worst_case"), 7.0)
    assert math.isclose(combine_uncertainties([3.0, float("nan"), 4.0]), 5.0)
    assert combine_uncertainties([]) == 0.0
    with pytest.raises(ValueError):
        combine_uncertainties([1.0], method="linear")


def test_rectangular_uncertainty():
    assert math.isclose(rectangular_uncertainty(0.01), 0.01 / math.sqrt(12.0))
    assert rectangular_uncertainty(-0.01) == rectangular_uncertainty(0.01)


def test_round_value_to_uncertainty():
    v, u = round_value_to_uncertainty(100.02237, 0.032886)
    assert u == 0.033
    assert v == 100.022


def test_round_value_to_uncertainty_carry():
    # 9.96 rounds up to 10 and loses a decimal
    v, u = round_value_to_uncertainty(123.456, 9.96)
    assert u == 10.0
    assert v == 123.0


def test_format_value_with_uncertainty():
    assert format_value_with_uncertainty(1.23456, 0.0123, "bar") == "1.235 ± 0.012 bar"
    assert format_value_with_uncertainty(123.456, 9.96) == "123 ± 10"
    assert format_value_with_uncertainty(5.0, 0.0) == "5 ± 0"


@pytest.mark.parametrize("query", [0.0, -3.0])
def test_log_family_below_domain_reports_twice_residual_sd(pressure_xy, query):
    res = fit_curve(*pressure_xy, CurveModel.LOGARITHMIC)
    assert res.n == 4
    assert interpolation_uncertainty(query, res) == pytest.approx(2.0 * res.residual_std_dev)


def test_power_family_below_domain_reports_twice_residual_sd():
    x = np.arange(1.0, 9.0)
    y = 2.0 * x**1.5 * (1.0 + 0.01 * np.array([1, -1, 1, -1, -1, 1, -1, 1]))
    res = fit_curve(x, y, CurveModel.POWER)
    assert interpolation_uncertainty(0.0, res) == pytest.approx(2.0 * res.residual_std_dev)


def test_split_with_log_segment_below_domain():
    x = np.linspace(1.0, 12.0, 12)
    y = 2.0 + 0.4 * x + 0.05 * np.cos(2.0 * x)
    res = fit_curve(x, y, CurveModel.PIECEWISE_MIXED, (CurveModel.LOGARITHMIC, CurveModel.LINEAR))
    low = res.coefficients.low
    assert interpolation_uncertainty(0.0, res) == pytest.approx(2.0 * low.residual_std_dev)


def test_gum_rounding_digits():
    assert gum_rounding_digits(0.033) == 3
    assert gum_rounding_digits(9.96) == 0
    assert gum_rounding_digits(123.0) == -1
    assert gum_rounding_digits(0.0996) == 2
    with pytest.raises(ValueError):
        gum_rounding_digits(0.0)


def test_large_uncertainty_rounds_value_to_tens():
    assert round_value_to_uncertainty(12345.6, 123.0) == (12350.0, 120.0)
    assert format_at_digits(12345.6, -1) == "12350"
    assert format_value_with_uncertainty(12345.6, 123.0, "Pa") == "12350 ± 120 Pa"
