"""Tests for the hypothesis tests and the quality verdict."""

import math

import numpy as np
import pytest

from metrocal.config import EngineConfig
from metrocal.models import CurveModel, ModelQuality, ValidationStepResult
from metrocal.stats.analysis import fit_curve
from metrocal.stats.regression import fit_single
from metrocal.stats.validation import (
    ANDERSON_DARLING,
    ANOVA_F_TEST,
    CORRELATION_SIGNIFICANCE,
    DURBIN_WATSON,
    MANDEL_LINEARITY,
    RESIDUAL_INDEPENDENCE,
    SPEARMAN_RANK,
    anderson_darling,
    anova_table,
    assess_quality,
    durbin_watson,
    failed_downgrading_steps,
    mandel_linearity,
    pearson_r,
    residual_independence,
    spearman_rank,
    validate_fit,
)


def _step(name, passed):
    return ValidationStepResult(
        name=name, passed=passed, statistic_name="x", statistic=0.0, critical_value=0.0
    )


class TestDurbinWatson:
    """Test suite for the Durbin-Watson statistic."""

    def test_known_value(self):
        """Matches the hand-computed statistic of the pressure residuals.

        Returns:
            None.
        """
        assert math.isclose(durbin_watson([0.002, 0.0, -0.002, -0.004, 0.004]), 1.9, rel_tol=1e-9)

    def test_vanishing_residuals(self):
        """Zero residuals mean no evidence of autocorrelation.

        Returns:
            None.
        """
        assert durbin_watson([0.0, 0.0, 0.0, 0.0]) == 2.0
        assert durbin_watson([1e-12, -1e-12, 1e-12]) == 2.0

    def test_alternating_residuals(self):
        """Strictly alternating residuals give a value near 4.

        Returns:
            None.
        """
        dw = durbin_watson([1.0, -1.0, 1.0, -1.0, 1.0, -1.0])
        assert dw > 3.0


class TestPressureStandardValidation:
    """Validation of the linear fit of the reference data set."""

    def test_every_step_present(self, pressure_xy):
        """Seven steps are reported in a fixed order.

        Returns:
            None.
        """
        res = fit_curve(*pressure_xy, CurveModel.LINEAR)
        assert [s.name for s in res.validation] == [
            ANOVA_F_TEST,
            CORRELATION_SIGNIFICANCE,
            SPEARMAN_RANK,
            ANDERSON_DARLING,
            RESIDUAL_INDEPENDENCE,
            MANDEL_LINEARITY,
            DURBIN_WATSON,
        ]
        assert res.step(SPEARMAN_RANK).not_applicable

    def test_statistics(self, pressure_xy):
        """F-test, Mandel and Durbin-Watson agree with hand calculation.

        Returns:
            None.
        """
        res = fit_curve(*pressure_xy, CurveModel.LINEAR)
        assert res.is_parametric_valid
        assert res.anova.f_statistic > res.anova.f_critical
        assert res.anova.p_value < 0.05
        assert math.isclose(res.durbin_watson, 1.9, rel_tol=1e-6)

        mandel = res.step(MANDEL_LINEARITY)
        assert mandel.passed
        assert math.isclose(mandel.statistic, 5.0, rel_tol=1e-3)
        assert mandel.critical_value == 18.51

        ad = res.step(ANDERSON_DARLING)
        assert ad.passed
        assert ad.statistic < 0.752

        assert res.step(RESIDUAL_INDEPENDENCE).passed
        assert res.step(CORRELATION_SIGNIFICANCE).passed

    def test_quality(self, pressure_xy):
        """The reference data set is EXCELLENT with R² above 0.999.

        Returns:
            None.
        """
        res = fit_curve(*pressure_xy, CurveModel.LINEAR)
        assert res.model_quality is ModelQuality.EXCELLENT
        assert res.r_squared > 0.999
        assert "Failed checks" not in res.recommendation


class TestIndividualSteps:
    """Test suite for the individual hypothesis tests."""

    def test_mandel_flags_curvature(self):
        """A quadratic response fails Mandel's linearity test.

        Returns:
            None.
        """
        x = np.arange(0.0, 10.0)
        step = mandel_linearity(x, x**2)
        assert not step.passed
        assert step.statistic > step.critical_value

    def test_mandel_needs_four_points(self):
        """Mandel's test is not applicable below four points.

        Returns:
            None.
        """
        step = mandel_linearity([1.0, 2.0, 3.0], [1.0, 2.0, 3.5])
        assert step.not_applicable
        assert not step.passed

    def test_spearman_with_ties(self):
        """Tied values receive their average rank.

        Returns:
            None.
        """
        step = spearman_rank([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], [1.0, 2.0, 2.0, 4.0, 5.0, 6.0])
        assert step.passed
        assert "rho = 0.98" in step.detail

    def test_spearman_rejects_unrelated_ranks(self):
        """A non-monotone relation is not significant.

        Returns:
            None.
        """
        step = spearman_rank([1.0, 2.0, 3.0, 4.0, 5.0], [3.0, 1.0, 5.0, 2.0, 4.0])
        assert not step.passed

    def test_anderson_darling_rejects_skewed_residuals(self):
        """One dominant residual is not normally distributed.

        Returns:
            None.
        """
        residuals = [-0.1] * 11 + [1.1]
        step = anderson_darling(residuals)
        assert not step.passed
        assert step.statistic > step.critical_value

    def test_anderson_darling_no_spread(self):
        """Residuals without spread are accepted.

        Returns:
            None.
        """
        assert anderson_darling([0.0, 0.0, 0.0, 0.0]).passed

    def test_residual_independence_detects_trend(self):
        """Residuals that grow with the fitted value fail.

        Returns:
            None.
        """
        fitted = np.arange(1.0, 11.0)
        step = residual_independence(fitted, 0.1 * fitted)
        assert not step.passed

    def test_pearson_constant_series(self):
        """A constant series has no defined correlation; 0 is returned.

        Returns:
            None.
        """
        assert pearson_r([1.0, 1.0, 1.0], [1.0, 2.0, 3.0]) == 0.0

    def test_anova_degrees_of_freedom(self):
        """A quadratic has two regression degrees of freedom.

        Returns:
            None.
        """
        x = np.arange(0.0, 8.0)
        fit = fit_single(x, x**2 + np.sin(x), CurveModel.POLYNOMIAL_2)
        anova = anova_table(fit)
        assert anova.df_reg == 2
        assert anova.df_res == 5
        assert math.isclose(anova.sst, anova.ssr + anova.sse, rel_tol=1e-9)


class TestTheilSenValidation:
    """Tests that assume normal residuals do not apply to Theil-Sen."""

    def test_not_applicable_steps(self, pressure_xy):
        """Only Spearman and Durbin-Watson are evaluated.

        Returns:
            None.
        """
        res = fit_curve(*pressure_xy, CurveModel.THEIL_SEN)
        assert res.anova is None
        applicable = {s.name for s in res.validation if not s.not_applicable}
        assert applicable == {SPEARMAN_RANK, DURBIN_WATSON}
        assert res.step(SPEARMAN_RANK).passed
        assert res.is_parametric_valid
        assert res.model_quality is not ModelQuality.INVALID

    def test_validate_fit_returns_no_anova(self, pressure_xy):
        """The orchestrator skips ANOVA for the non-parametric fit.

        Returns:
            None.
        """
        fit = fit_single(np.array(pressure_xy[0]), np.array(pressure_xy[1]), CurveModel.THEIL_SEN)
        anova, steps = validate_fit(fit)
        assert anova is None
        assert len(steps) == 7


class TestQualityVerdict:
    """Test suite for the quality rules."""

    def test_too_few_points(self):
        """Fewer than three points is INVALID.

        Returns:
            None.
        """
        assert assess_quality(CurveModel.LINEAR, 2, 1.0, True, 2.0, ()) is ModelQuality.INVALID

    def test_r2_levels(self):
        """R² thresholds map to EXCELLENT, GOOD and POOR.

        Returns:
            None.
        """
        assert assess_quality(CurveModel.LINEAR, 10, 0.999, True, 2.0, ()) is ModelQuality.EXCELLENT
        assert assess_quality(CurveModel.LINEAR, 10, 0.97, True, 2.0, ()) is ModelQuality.GOOD
        assert assess_quality(CurveModel.LINEAR, 10, 0.90, True, 2.0, ()) is ModelQuality.POOR
        assert assess_quality(CurveModel.LINEAR, 10, 0.999, False, 2.0, ()) is ModelQuality.POOR

    def test_durbin_watson_downgrades(self):
        """Autocorrelated residuals cap the verdict at GOOD.

        Returns:
            None.
        """
        assert assess_quality(CurveModel.LINEAR, 10, 0.999, True, 0.5, ()) is ModelQuality.GOOD
        assert assess_quality(CurveModel.LINEAR, 10, 0.999, True, 3.5, ()) is ModelQuality.GOOD

    def test_failed_steps_downgrade(self):
        """Each failed extended test drops one level.

        Returns:
            None.
        """
        one = (_step(ANDERSON_DARLING, False),)
        two = one + (_step(RESIDUAL_INDEPENDENCE, False),)
        assert assess_quality(CurveModel.LINEAR, 10, 0.999, True, 2.0, one) is ModelQuality.GOOD
        assert assess_quality(CurveModel.LINEAR, 10, 0.999, True, 2.0, two) is ModelQuality.POOR

    def test_mandel_only_counts_for_linear(self):
        """Curvature is expected for curved families.

        Returns:
            None.
        """
        steps = (_step(MANDEL_LINEARITY, False),)
        assert failed_downgrading_steps(CurveModel.LINEAR, steps) == (MANDEL_LINEARITY,)
        assert failed_downgrading_steps(CurveModel.POLYNOMIAL_2, steps) == ()
        assert assess_quality(CurveModel.POLYNOMIAL_2, 10, 0.999, True, 2.0, steps) is ModelQuality.EXCELLENT

    def test_configurable_thresholds(self):
        """Thresholds come from the engine configuration.

        Returns:
            None.
        """
        strict = EngineConfig(excellent_r2=0.9999)
        assert assess_quality(CurveModel.LINEAR, 10, 0.999, True, 2.0, (), strict) is ModelQuality.GOOD


@pytest.mark.parametrize("model", list(CurveModel))
def test_r_squared_bounded(model):
    x = np.linspace(1.0, 10.0, 10)
    y = 1.0 + 0.3 * x + 0.2 * np.sin(3.0 * x)
    res = fit_curve(x, y, model)
    assert 0.0 <= res.r_squared <= 1.0
    assert res.residual_std_dev >= 0.0
