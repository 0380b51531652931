"""Critical values and distribution helpers at 95 % confidence.

The Student-t and F lookups are coarse tables keyed by degree-of-freedom
breakpoints. They are kept exactly as published on existing certificates;
a continuous quantile function would move pass/fail boundaries.
"""

from __future__ import annotations

import math
from typing import Tuple

from scipy.stats import norm

# (upper df bound, two-tailed t at 95 %)
T_TABLE_95: Tuple[Tuple[float, float], ...] = (
    (1, 12.706),
    (2, 4.303),
    (3, 3.182),
    (4, 2.776),
    (5, 2.571),
    (10, 2.228),
    (20, 2.086),
    (60, 2.000),
    (math.inf, 1.960),
)

# (upper df_res bound, F(alpha=0.05)) for df_reg = 1 and df_reg = 2.
F_TABLE_95: dict[int, Tuple[Tuple[float, float], ...]] = {
    1: (
        (1, 161.45),
        (2, 18.51),
        (3, 10.13),
        (4, 7.71),
        (5, 6.61),
        (10, 4.96),
        (20, 4.35),
        (60, 4.00),
        (math.inf, 3.84),
    ),
    2: (
        (1, 199.5),
        (2, 19.00),
        (5, 5.79),
        (10, 4.10),
        (20, 3.49),
        (60, 3.15),
        (math.inf, 3.00),
    ),
}

# Used for df_reg > 2, where the table has no rows.
F_CRIT_HIGHER_ORDER: float = 2.6


def _lookup(table: Tuple[Tuple[float, float], ...], df: float) -> float:
    for bound, value in table:
        if df <= bound:
            return value
    return table[-1][1]


def t_critical(df: float) -> float:
    """Two-tailed Student-t critical value at 95 % confidence.

    Degrees of freedom at or below 1 (including non-positive values from
    degenerate fits) map to the df = 1 row.
    """
    return _lookup(T_TABLE_95, df)


def f_critical(df_res: float, df_reg: int = 1) -> float:
    """Upper F critical value at alpha = 0.05 for ``(df_reg, df_res)``."""
    table = F_TABLE_95.get(int(df_reg))
    if table is None:
        return F_CRIT_HIGHER_ORDER
    return _lookup(table, df_res)


def normal_cdf(z: float) -> float:
    """Standard normal cumulative distribution function."""
    return float(norm.cdf(z))
