"""Intermediate checks (statistical process control) on reference standards.

Between certificate calibrations a standard is checked at a few fixed points.
The drift of each point, ``mean - nominal``, must stay inside configured
control limits. Checks are accumulated on the standard as new frozen
instances; a standard is never modified in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .models import (
    CheckConfig,
    CheckLimits,
    CheckPointResult,
    CheckStatus,
    IntermediateCheck,
    ReferenceStandard,
)

LOGGER = logging.getLogger(__name__)

# Control limits are +/- this fraction of the standard's full range.
DEFAULT_LIMIT_FRACTION = 0.002
EXPIRY_WARNING_DAYS = 30
CHECK_INTERVAL_DAYS = 180


@dataclass(frozen=True)
class CumulativeStats:
    mean: float
    std_dev: float
    n: int
    readings: Tuple[float, ...]


def summarize_check_readings(nominal: float, readings: Sequence[float]) -> CheckPointResult:
    """Mean, sample standard deviation and range of one check point.

    Raises:
        ValueError: If ``readings`` is empty.
    """
    values = np.asarray([float(r) for r in readings], dtype=float)
    if values.size == 0:
        raise ValueError(f"No readings supplied for check point {nominal}.")
    std_dev = float(np.std(values, ddof=1)) if values.size > 1 else 0.0
    return CheckPointResult(
        nominal=float(nominal),
        readings=tuple(float(v) for v in values),
        mean=float(np.mean(values)),
        std_dev=std_dev,
        range=float(np.ptp(values)),
    )


def default_check_config(range_min: float, range_max: float) -> CheckConfig:
    """Check points at zero, mid-range and full scale with ±0.2 % limits."""
    points = (float(range_min), 0.5 * float(range_max), float(range_max))
    half_width = abs(float(range_max)) * DEFAULT_LIMIT_FRACTION
    limits = {p: CheckLimits(ucl=half_width, lcl=-half_width) for p in points}
    return CheckConfig(check_points=points, limits=limits)


def point_in_control(result: CheckPointResult, limits: Optional[CheckLimits]) -> bool:
    """True when the drift lies inside ``[lcl, ucl]`` (or no limits are set)."""
    if limits is None:
        return True
    drift = result.mean - result.nominal
    return limits.lcl <= drift <= limits.ucl


def evaluate_check(config: CheckConfig, results: Iterable[CheckPointResult]) -> CheckStatus:
    """Overall verdict of one intermediate check.

    FAIL when any point drifts outside its limits, WARNING when a configured
    check point has no result, PASS otherwise.
    """
    results = tuple(results)
    for res in results:
        if not point_in_control(res, config.limits.get(res.nominal)):
            LOGGER.warning(
                "Check point %g out of control: drift %.6g.", res.nominal, res.mean - res.nominal
            )
            return CheckStatus.FAIL
    measured = {res.nominal for res in results}
    missing = [p for p in config.check_points if p not in measured]
    if missing:
        LOGGER.info("Check points without readings: %s", ", ".join(f"{p:g}" for p in missing))
        return CheckStatus.WARNING
    return CheckStatus.PASS


def record_check(
    standard: ReferenceStandard,
    check_date: date,
    technician: str,
    results: Sequence[CheckPointResult],
) -> ReferenceStandard:
    """Return a copy of ``standard`` with a new intermediate check appended.

    A check already recorded on ``check_date`` is replaced; its point results
    are merged with the new ones (new results win for the same nominal).
    """
    config = standard.check_config or default_check_config(standard.range_min, standard.range_max)
    merged = {r.nominal: r for r in results}
    others = []
    for check in standard.intermediate_checks:
        if check.date == check_date:
            merged = {**{r.nominal: r for r in check.results}, **merged}
        else:
            others.append(check)

    point_results = tuple(sorted(merged.values(), key=lambda r: r.nominal))
    check = IntermediateCheck(
        date=check_date,
        technician=technician,
        results=point_results,
        global_result=evaluate_check(config, point_results),
    )
    checks = tuple(sorted(others + [check], key=lambda c: c.date))
    return replace(standard, check_config=config, intermediate_checks=checks)


def cumulative_stats(checks: Iterable[IntermediateCheck], nominal: float) -> Optional[CumulativeStats]:
    """Pool every reading taken at ``nominal`` across checks.

    Returns ``None`` when fewer than two readings are available.
    """
    readings: list[float] = []
    for check in checks:
        for res in check.results:
            if res.nominal == nominal:
                readings.extend(res.readings)
    if len(readings) < 2:
        return None
    values = np.asarray(readings, dtype=float)
    return CumulativeStats(
        mean=float(np.mean(values)),
        std_dev=float(np.std(values, ddof=1)),
        n=int(values.size),
        readings=tuple(readings),
    )


def check_trend(checks: Iterable[IntermediateCheck], nominal: float) -> Tuple[Tuple[date, float], ...]:
    """Chronological ``(date, mean)`` series for one check point."""
    series = [
        (check.date, res.mean)
        for check in checks
        for res in check.results
        if res.nominal == nominal
    ]
    return tuple(sorted(series, key=lambda item: item[0]))


def days_until_expiry(standard: ReferenceStandard, today: date) -> Optional[int]:
    if standard.expiry_date is None:
        return None
    return (standard.expiry_date - today).days


def is_expiring_soon(standard: ReferenceStandard, today: date) -> bool:
    days = days_until_expiry(standard, today)
    return days is not None and 0 <= days <= EXPIRY_WARNING_DAYS


def is_check_pending(standard: ReferenceStandard, today: date) -> bool:
    """A standard never checked, or last checked over six months ago."""
    if not standard.intermediate_checks:
        return True
    last = max(check.date for check in standard.intermediate_checks)
    return today - last > timedelta(days=CHECK_INTERVAL_DAYS)
