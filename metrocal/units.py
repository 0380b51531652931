"""Centralized unit conversion utilities."""

from __future__ import annotations

CM_PER_M: float = 100.0

# Pascals per one unit of each supported pressure unit.
PASCALS_PER_UNIT: dict[str, float] = {
    "Pa": 1.0,
    "hPa": 100.0,
    "kPa": 1.0e3,
    "MPa": 1.0e6,
    "mbar": 100.0,
    "bar": 1.0e5,
    "psi": 6894.757293168,
}


def cm_to_m(length_cm: float) -> float:
    """Convert a height difference from centimetres to metres.

    Args:
        length_cm (float): Length in centimetres, as entered for the head
            height between the standard and the instrument reference levels.

    Returns:
        float: Length in metres.
    """
    return float(length_cm) / CM_PER_M


def is_pressure_unit(unit: str) -> bool:
    return unit in PASCALS_PER_UNIT


def pascal_to(value_pa: float, unit: str) -> float:
    """Convert a pressure in pascals to ``unit``.

    Args:
        value_pa (float): Pressure in Pa.
        unit (str): Target unit symbol, one of :data:`PASCALS_PER_UNIT`.

    Returns:
        float: Pressure expressed in ``unit``.

    Raises:
        KeyError: If ``unit`` is not a supported pressure unit.

    References:
        SI brochure; 1 bar = 10^5 Pa, 1 psi = 6894.757 Pa.
    """
    factor = PASCALS_PER_UNIT.get(unit)
    if factor is None:
        raise KeyError(f"No pressure conversion available for unit '{unit}'.")
    return float(value_pa) / factor
