"""Write calibration outputs to reproducible CSV files.

This module is the boundary between in-memory results and the tabular
artifacts attached to a certificate.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Mapping, Optional, Sequence

import pandas as pd

from .models import CalibrationResult, CurveModel, RegressionResult
from .reporting import (
    COLUMNS,
    add_formatted_reporting_columns,
    create_model_comparison_dataframe,
    create_results_dataframe,
    create_validation_dataframe,
    relative_uncertainty_percent,
)

LOGGER = logging.getLogger(__name__)


def _with_relative_uncertainty(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    out["Relative U (% of true value)"] = [
        relative_uncertainty_percent(v, u)
        for v, u in zip(out[COLUMNS.true_value], out[COLUMNS.expanded_uncertainty])
    ]
    return out


def save_results_to_csv(
    results: Sequence[CalibrationResult],
    output_dir: str = "output",
    filename: str = "calibration_results.csv",
) -> str:
    """Save per-point calibration results with certificate-formatted columns.

    Args:
        results (Sequence[CalibrationResult]): Output of
            :func:`metrocal.calibration.compute_results`.
        output_dir (str): Directory where the CSV is written.
        filename (str): File name inside ``output_dir``.

    Returns:
        str: Path to the written file.

    Note:
        Points whose expanded uncertainty is zero (no propagated terms) are
        exported without formatted columns for that row.
    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, filename)

    df = create_results_dataframe(results)
    positive = df[COLUMNS.expanded_uncertainty] > 0
    report = df
    if bool(positive.all()) and not df.empty:
        report = add_formatted_reporting_columns(
            df,
            [
                (COLUMNS.true_value, COLUMNS.expanded_uncertainty),
                (COLUMNS.mean_error, COLUMNS.expanded_uncertainty),
            ],
        )
    elif not df.empty:
        LOGGER.warning("Some points have zero expanded uncertainty; skipping formatted columns.")
    if not df.empty:
        report = _with_relative_uncertainty(report)

    report.to_csv(path, index=False)
    LOGGER.info("Saved calibration results to %s", path)
    return path


def save_regression_tables(
    result: RegressionResult,
    candidates: Optional[Mapping[CurveModel, RegressionResult]] = None,
    output_dir: str = "output",
    prefix: str = "value_model",
) -> Dict[str, str]:
    """Save the validation table and, when given, the model comparison table.

    Returns:
        dict[str, str]: Mapping ``{"validation": path, "comparison": path}``
        (``comparison`` only when ``candidates`` is provided).
    """
    os.makedirs(output_dir, exist_ok=True)
    paths: Dict[str, str] = {}

    validation_path = os.path.join(output_dir, f"{prefix}_validation.csv")
    create_validation_dataframe(result).to_csv(validation_path, index=False)
    paths["validation"] = validation_path

    if candidates is not None:
        comparison_path = os.path.join(output_dir, f"{prefix}_comparison.csv")
        create_model_comparison_dataframe(candidates).to_csv(comparison_path, index=False)
        paths["comparison"] = comparison_path

    for kind, path in paths.items():
        LOGGER.info("Saved %s table to %s", kind, path)
    return paths
