"""Local gravity and hydrostatic head correction."""

from __future__ import annotations

import math

from .. import units

# International gravity formula (1967 series) coefficients.
_G_EQUATOR = 9.780327  # m/s^2
_G_SIN2 = 0.0053024
_G_SIN2_2 = 0.0000058
FREE_AIR_GRADIENT = 3.086e-6  # (m/s^2) per metre of height


def local_gravity(latitude: float, height_m: float) -> float:
    """Return local gravitational acceleration.

    Args:
        latitude (float): Geodetic latitude in degrees.
        height_m (float): Height above sea level in metres.

    Returns:
        float: Gravity in m/s^2, rounded to five decimals.

    Note:
        Only the free-air correction is applied for height; Bouguer and
        terrain terms are ignored.
    """
    lat = math.radians(float(latitude))
    sin_lat = math.sin(lat)
    sin_2lat = math.sin(2.0 * lat)
    g_lat = _G_EQUATOR * (1.0 + _G_SIN2 * sin_lat**2 - _G_SIN2_2 * sin_2lat**2)
    return round(g_lat - FREE_AIR_GRADIENT * float(height_m), 5)


def head_correction_pa(fluid_density: float, gravity: float, height_m: float) -> float:
    """Hydrostatic pressure difference ``ΔP = ρ·g·h`` in pascals.

    A positive ``height_m`` means the standard's reference level sits above
    the instrument's, so the correction is added to the standard reading.
    """
    return float(fluid_density) * float(gravity) * float(height_m)


def head_correction(
    fluid_density: float, gravity: float, height_diff_cm: float, unit: str
) -> float:
    """Head correction expressed in ``unit``.

    Args:
        fluid_density (float): Density of the transmitting fluid in kg/m^3.
        gravity (float): Local gravity in m/s^2.
        height_diff_cm (float): Height difference in cm.
        unit (str): Unit of the standard's readings.

    Returns:
        float: Correction in ``unit``; ``0.0`` when ``unit`` is not a pressure
        unit (temperature or humidity standards carry no head correction).
    """
    if not units.is_pressure_unit(unit):
        return 0.0
    delta_pa = head_correction_pa(fluid_density, gravity, units.cm_to_m(height_diff_cm))
    return units.pascal_to(delta_pa, unit)
