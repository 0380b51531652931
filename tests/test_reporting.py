"""Tests for result tables, report text and CSV export."""

import math
import os
from dataclasses import astuple

import numpy as np
import pandas as pd
import pytest

from metrocal.calibration import compute_results
from metrocal.models import CalibrationPoint, CurveModel, Instrument
from metrocal.output import save_regression_tables, save_results_to_csv
from metrocal.reporting import (
    COLUMNS,
    add_formatted_reporting_columns,
    create_model_comparison_dataframe,
    create_results_dataframe,
    create_validation_dataframe,
    format_result_line,
    format_value_to_uncertainty_decimals,
    relative_uncertainty_percent,
    render_validation_report,
    uncertainty_decimal_places,
    write_report_file,
)
from metrocal.stats.analysis import compare_models, fit_curve, fit_with_selection

INSTRUMENT = Instrument(range_min=0.0, range_max=200.0, resolution=0.01, accuracy_class=0.5)


@pytest.fixture
def results(pressure_standard):
    session = [
        CalibrationPoint(0.0, 0.0, 0.01, 0.02, 0.01, 0.02),
        CalibrationPoint(100.0, 100.0, 100.03, 100.04, 100.02, 100.05),
    ]
    return compute_results(session, INSTRUMENT, pressure_standard, 1.2, 0.0)


class TestDecimalFormatting:
    """Test suite for GUM-driven decimal places."""

    def test_decimal_places(self):
        """Two significant figures of U set the decimals.

        Returns:
            None.
        """
        assert uncertainty_decimal_places(0.033) == 3
        assert uncertainty_decimal_places(0.25) == 2
        assert uncertainty_decimal_places(2.5) == 1
        assert uncertainty_decimal_places(25.0) == 0

    def test_rejects_non_positive(self):
        """A zero or missing uncertainty cannot be formatted.

        Returns:
            None.
        """
        with pytest.raises(ValueError):
            uncertainty_decimal_places(0.0)
        with pytest.raises(ValueError):
            uncertainty_decimal_places(float("nan"))

    def test_value_formatting(self):
        """Values follow the decimals of their uncertainty.

        Returns:
            None.
        """
        assert format_value_to_uncertainty_decimals(100.02237, 0.033) == "100.022"

    def test_large_uncertainty_rounds_value_to_tens(self):
        """U of 100 or more moves the rounding position left of the point.

        Returns:
            None.
        """
        assert uncertainty_decimal_places(123.0) == 0
        assert format_value_to_uncertainty_decimals(12345.6, 123.0) == "12350"
        df = pd.DataFrame({"v": [12345.6], "u": [123.0]})
        out = add_formatted_reporting_columns(df, [("v", "u")])
        assert out.loc[0, "v (reported)"] == "12350"
        assert out.loc[0, "u (reported)"] == "120"

    def test_relative_uncertainty(self):
        """Relative U is a percentage of |value|.

        Returns:
            None.
        """
        assert math.isclose(relative_uncertainty_percent(-200.0, 0.05), 0.025)
        assert np.isnan(relative_uncertainty_percent(0.0, 0.05))

    def test_formatted_columns(self):
        """Formatted columns are added once per uncertainty column.

        Returns:
            None.
        """
        df = pd.DataFrame({"v": [1.23456, 2.5], "w": [0.5, 0.75], "u": [0.0123, 0.25]})
        out = add_formatted_reporting_columns(df, [("v", "u"), ("w", "u")])
        assert list(out["v (reported)"]) == ["1.235", "2.50"]
        assert list(out["u (reported)"]) == ["0.012", "0.25"]
        assert "w (reported)" in out.columns

    def test_formatted_columns_require_uncertainty(self):
        """A value without a positive uncertainty is rejected.

        Returns:
            None.
        """
        df = pd.DataFrame({"v": [1.0], "u": [0.0]})
        with pytest.raises(ValueError):
            add_formatted_reporting_columns(df, [("v", "u")])
        with pytest.raises(KeyError):
            add_formatted_reporting_columns(df, [("v", "missing")])


class TestTables:
    """Test suite for the tabular views."""

    def test_results_dataframe(self, results):
        """One row per point with the standard columns.

        Returns:
            None.
        """
        df = create_results_dataframe(results)
        assert list(df.columns) == list(astuple(COLUMNS))
        assert len(df) == 2
        assert df[COLUMNS.compliance].all()

    def test_comparison_sorted_by_aicc(self, pressure_xy):
        """Candidates are listed best first.

        Returns:
            None.
        """
        df = create_model_comparison_dataframe(compare_models(*pressure_xy))
        assert len(df) == 4
        assert list(df["AICc"]) == sorted(df["AICc"])
        assert df.loc[0, "Fitted Model"] == CurveModel.LINEAR.value

    def test_validation_dataframe(self, pressure_xy):
        """Not-applicable steps are marked N/A.

        Returns:
            None.
        """
        df = create_validation_dataframe(fit_curve(*pressure_xy, CurveModel.LINEAR))
        results = dict(zip(df["Test"], df["Result"]))
        assert results["spearman_rank"] == "N/A"
        assert results["anova_f_test"] == "PASS"
        assert results["mandel_linearity"] == "PASS"


class TestReportText:
    """Test suite for the plain-text report."""

    def test_validation_report(self, pressure_xy):
        """The report lists the verdict, the F-test and every step.

        Returns:
            None.
        """
        text = render_validation_report(fit_with_selection(*pressure_xy, CurveModel.LINEAR), title="PS-200")
        assert text.startswith("PS-200\n======")
        assert "Quality:    EXCELLENT" in text
        assert "F-test:" in text
        assert "Durbin-Watson: 1.900" in text
        assert "[PASS] anova_f_test" in text
        assert "[N/A ] spearman_rank" in text
        assert "Best fit:   yes" in text

    def test_invalid_report_is_short(self):
        """An INVALID result only reports why.

        Returns:
            None.
        """
        text = render_validation_report(fit_curve([1.0, 2.0], [1.0, 2.0], CurveModel.LINEAR))
        assert "Quality:    INVALID" in text
        assert "Insufficient data" in text
        assert "Extended validation" not in text

    def test_result_line(self, results):
        """One line per point with GUM rounding.

        Returns:
            None.
        """
        line = format_result_line(results[1], "bar")
        assert line.startswith("100 bar: error ")
        assert line.endswith("[OK]")
        assert "±" in line

    def test_write_report_file(self, tmp_path):
        """Reports are written as UTF-8 text.

        Returns:
            None.
        """
        path = write_report_file("R² = 1\n\n", str(tmp_path / "reports"), "value_model_report")
        assert path.endswith("value_model_report.txt")
        with open(path, encoding="utf-8") as handle:
            assert handle.read() == "R² = 1\n"


class TestCsvExport:
    """Test suite for the CSV writers."""

    def test_save_results(self, results, tmp_path):
        """Results CSV carries numeric, formatted and relative columns.

        Returns:
            None.
        """
        path = save_results_to_csv(results, str(tmp_path))
        assert os.path.basename(path) == "calibration_results.csv"
        df = pd.read_csv(path)
        assert len(df) == 2
        assert f"{COLUMNS.true_value} (reported)" in df.columns
        assert f"{COLUMNS.expanded_uncertainty} (reported)" in df.columns
        assert "Relative U (% of true value)" in df.columns

    def test_save_empty_results(self, tmp_path):
        """An empty session still writes a header.

        Returns:
            None.
        """
        path = save_results_to_csv([], str(tmp_path), filename="empty.csv")
        with open(path, encoding="utf-8") as handle:
            assert handle.readline().startswith(COLUMNS.nominal)

    def test_save_regression_tables(self, pressure_xy, tmp_path):
        """Validation and comparison tables are written side by side.

        Returns:
            None.
        """
        res = fit_with_selection(*pressure_xy, CurveModel.LINEAR)
        paths = save_regression_tables(res, compare_models(*pressure_xy), str(tmp_path))
        assert set(paths) == {"validation", "comparison"}
        assert all(os.path.exists(p) for p in paths.values())
        only = save_regression_tables(res, output_dir=str(tmp_path), prefix="uncertainty_model")
        assert set(only) == {"validation"}
