"""Pytest configuration for repository-relative imports and shared fixtures."""

import os
import sys

import matplotlib
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

matplotlib.use("Agg")

from metrocal.models import CurveModel, ReferenceStandard, StandardCalibrationPoint  # noqa: E402

# A 0-200 bar pressure standard whose certificate shows a slight span error.
INDICATIONS = (0.0, 50.0, 100.0, 150.0, 200.0)
REFERENCES = (0.0, 50.01, 100.02, 150.03, 200.05)


def certificate_uncertainty(reference):
    """Expanded (k=2) certificate uncertainty growing linearly with the value."""
    return 0.01 + 0.0001 * reference


@pytest.fixture
def pressure_xy():
    return list(INDICATIONS), list(REFERENCES)


@pytest.fixture
def certificate_points():
    return tuple(
        StandardCalibrationPoint(
            nominal=ind,
            indication=ind,
            reference_value=ref,
            uncertainty=certificate_uncertainty(ref),
            coverage_factor=2.0,
        )
        for ind, ref in zip(INDICATIONS, REFERENCES)
    )


@pytest.fixture
def pressure_standard(certificate_points):
    return ReferenceStandard(
        name="PS-200",
        unit="bar",
        resolution=0.001,
        range_min=0.0,
        range_max=200.0,
        calibration_points=certificate_points,
        value_model=CurveModel.LINEAR,
        uncertainty_model=CurveModel.LINEAR,
    )
