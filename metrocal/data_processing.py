"""
Handles CSV parsing of standard certificates and calibration sessions.
"""

# Both loaders accept loosely formatted spreadsheets: headers are matched
# case-insensitively with a few common aliases, numeric cells are coerced, and
# rows missing a required value are dropped with a logged warning.

from __future__ import annotations

import logging
from typing import Dict, Tuple

import pandas as pd

from .models import CalibrationPoint, Distribution, StandardCalibrationPoint

LOGGER = logging.getLogger(__name__)

_STANDARD_ALIASES: Dict[str, str] = {
    "nominal": "nominal",
    "indication": "indication",
    "reading": "indication",
    "reference": "reference_value",
    "reference value": "reference_value",
    "reference_value": "reference_value",
    "uncertainty": "uncertainty",
    "u": "uncertainty",
    "k": "coverage_factor",
    "coverage factor": "coverage_factor",
    "coverage_factor": "coverage_factor",
    "confidence level": "confidence_level",
    "confidence_level": "confidence_level",
    "distribution": "distribution",
}

_SESSION_ALIASES: Dict[str, str] = {
    "nominal": "nominal",
    "standard": "standard_reading",
    "standard reading": "standard_reading",
    "standard_reading": "standard_reading",
    "run1 up": "run1_up",
    "run1_up": "run1_up",
    "run1 down": "run1_down",
    "run1_down": "run1_down",
    "run2 up": "run2_up",
    "run2_up": "run2_up",
    "run2 down": "run2_down",
    "run2_down": "run2_down",
}

_STANDARD_REQUIRED = ("indication", "reference_value", "uncertainty")
_SESSION_REQUIRED = ("nominal", "standard_reading")
_RUN_COLUMNS = ("run1_up", "run1_down", "run2_up", "run2_down")


def normalize_columns(df: pd.DataFrame, aliases: Dict[str, str]) -> pd.DataFrame:
    """Rename recognised headers to their canonical names; others are dropped."""
    rename_map = {}
    for col in df.columns:
        key = str(col).strip().lower()
        if key in aliases:
            rename_map[col] = aliases[key]
    out = df.rename(columns=rename_map)
    return out[[c for c in out.columns if c in set(aliases.values())]]


def _coerce_numeric(df: pd.DataFrame, columns, required, source: str) -> pd.DataFrame:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise KeyError(f"{source}: missing required column(s) {missing}.")
    out = df.dropna(how="all").copy()
    for col in columns:
        if col in out.columns:
            out[col] = pd.to_numeric(out[col], errors="coerce")
    before = len(out)
    out = out.dropna(subset=list(required))
    dropped = before - len(out)
    if dropped:
        LOGGER.warning("%s: dropped %d row(s) with missing or non-numeric values.", source, dropped)
    return out.reset_index(drop=True)


def standard_points_from_frame(df: pd.DataFrame, source: str = "standard") -> Tuple[StandardCalibrationPoint, ...]:
    """Build certificate points from a table.

    ``nominal`` defaults to the reference value, ``coverage_factor`` to 2 and
    ``distribution`` to Normal when the columns are absent or blank.

    Raises:
        KeyError: If indication, reference value or uncertainty is missing.
    """
    df = normalize_columns(df, _STANDARD_ALIASES)
    df = _coerce_numeric(
        df,
        ("nominal", "indication", "reference_value", "uncertainty", "coverage_factor", "confidence_level"),
        _STANDARD_REQUIRED,
        source,
    )

    points = []
    for row in df.itertuples(index=False):
        values = row._asdict()
        nominal = values.get("nominal")
        k = values.get("coverage_factor")
        confidence = values.get("confidence_level")
        dist = values.get("distribution")
        points.append(
            StandardCalibrationPoint(
                nominal=float(values["reference_value"] if pd.isna(nominal) or nominal is None else nominal),
                indication=float(values["indication"]),
                reference_value=float(values["reference_value"]),
                uncertainty=float(values["uncertainty"]),
                coverage_factor=2.0 if k is None or pd.isna(k) or k <= 0 else float(k),
                confidence_level=95.45 if confidence is None or pd.isna(confidence) else float(confidence),
                distribution=Distribution(dist) if isinstance(dist, str) and dist.strip() else Distribution.NORMAL,
            )
        )
    return tuple(sorted(points, key=lambda p: p.indication))


def session_points_from_frame(df: pd.DataFrame, source: str = "session") -> Tuple[CalibrationPoint, ...]:
    """Build calibration session points from a table; run columns are optional."""
    df = normalize_columns(df, _SESSION_ALIASES)
    df = _coerce_numeric(df, _SESSION_REQUIRED + _RUN_COLUMNS, _SESSION_REQUIRED, source)

    def _opt(value):
        return None if value is None or pd.isna(value) else float(value)

    points = []
    for row in df.itertuples(index=False):
        values = row._asdict()
        points.append(
            CalibrationPoint(
                nominal=float(values["nominal"]),
                standard_reading=float(values["standard_reading"]),
                **{col: _opt(values.get(col)) for col in _RUN_COLUMNS},
            )
        )
    return tuple(points)


def load_standard_points(filepath: str) -> Tuple[StandardCalibrationPoint, ...]:
    """
    Load a reference standard's certificate points from a CSV file.

    Args:
        filepath (str): Path to the CSV file.

    Returns:
        tuple[StandardCalibrationPoint, ...]: Points sorted by indication.
    """
    return standard_points_from_frame(pd.read_csv(filepath), source=str(filepath))


def load_session_points(filepath: str) -> Tuple[CalibrationPoint, ...]:
    """
    Load calibration session test points from a CSV file.

    Args:
        filepath (str): Path to the CSV file.

    Returns:
        tuple[CalibrationPoint, ...]: Points in file order.
    """
    return session_points_from_frame(pd.read_csv(filepath), source=str(filepath))
