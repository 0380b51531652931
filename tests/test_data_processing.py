"""Tests for loading certificate and session CSV files."""

import pandas as pd
import pytest

from metrocal.data_processing import (
    load_session_points,
    load_standard_points,
    normalize_columns,
    session_points_from_frame,
    standard_points_from_frame,
)
from metrocal.models import Distribution


def test_load_standard_points_with_aliases(tmp_path, caplog):
    path = tmp_path / "standard.csv"
    path.write_text(
        "Reading,Reference Value,U,k,Notes\n"
        "100,100.02,0.02,2,\n"
        "0,0,0.01,,first point\n"
        "50,50.01,,2,missing uncertainty\n"
        "150,150.03,0.025,2.5,\n"
    )
    with caplog.at_level("WARNING"):
        points = load_standard_points(str(path))

    assert [p.indication for p in points] == [0.0, 100.0, 150.0]
    assert "dropped 1 row(s)" in caplog.text
    first = points[0]
    assert first.coverage_factor == 2.0
    assert first.nominal == first.reference_value == 0.0
    assert first.distribution is Distribution.NORMAL
    assert points[2].coverage_factor == 2.5
    assert points[2].standard_uncertainty == pytest.approx(0.01)


def test_standard_points_missing_column():
    df = pd.DataFrame({"indication": [1.0], "reference_value": [1.0]})
    with pytest.raises(KeyError, match="uncertainty"):
        standard_points_from_frame(df)


def test_standard_points_distribution_column():
    df = pd.DataFrame(
        {
            "Indication": [1.0, 2.0],
            "Reference": [1.0, 2.0],
            "Uncertainty": [0.1, 0.1],
            "Distribution": ["Rectangular", ""],
        }
    )
    points = standard_points_from_frame(df)
    assert points[0].distribution is Distribution.RECTANGULAR
    assert points[1].distribution is Distribution.NORMAL


def test_load_session_points(tmp_path):
    path = tmp_path / "session.csv"
    path.write_text(
        "Nominal,Standard Reading,Run1 Up,Run1 Down,Run2 Up,Run2 Down\n"
        "0,0.001,0.01,0.02,,\n"
        "100,100.0,100.03,100.04,100.02,100.05\n"
        "abc,1,1,1,1,1\n"
    )
    points = load_session_points(str(path))
    assert len(points) == 2
    assert points[0].run2_up is None
    assert points[0].readings == (0.01, 0.02)
    assert points[1].standard_reading == 100.0
    assert len(points[1].readings) == 4


def test_session_points_only_required_columns():
    df = pd.DataFrame({"nominal": [10.0], "standard": [10.01]})
    (point,) = session_points_from_frame(df)
    assert point.readings == ()


def test_normalize_columns_drops_unknown():
    df = pd.DataFrame({" Nominal ": [1], "Comment": ["x"], "STANDARD": [2]})
    out = normalize_columns(df, {"nominal": "nominal", "standard": "standard_reading"})
    assert list(out.columns) == ["nominal", "standard_reading"]
