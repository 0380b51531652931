"""Fluid densities for hydrostatic head corrections.

Water density follows the Tanaka et al. (2001) five-constant fit, valid from
0 to 40 °C at 101.325 kPa. Moist-air density follows the CIPM-2007 equation
(Picard et al., Metrologia 45, 2008), including the CO₂ adjustment of the
apparent molar mass of dry air.
"""

from __future__ import annotations

import math

from ..config import DEFAULT_CO2_PPM
from ..models import CalibrationFluid

# Tanaka (2001) constants.
_A1 = -3.983035  # °C
_A2 = 301.797  # °C
_A3 = 522528.9  # °C^2
_A4 = 69.34881  # °C
_A5 = 999.974950  # kg/m^3

# CIPM-2007 constants.
_R = 8.314472  # J/(mol K)
_MV = 18.01528e-3  # kg/mol, water vapour
_SVP_A = 1.2378847e-5  # K^-2
_SVP_B = -1.9121316e-2  # K^-1
_SVP_C = 33.93711047
_SVP_D = -6.3431645e3  # K
_ENH_ALPHA = 1.00062
_ENH_BETA = 3.14e-8  # Pa^-1
_ENH_GAMMA = 5.6e-7  # K^-2

_Z_A0 = 1.58123e-6
_Z_A1 = -2.9331e-8
_Z_A2 = 1.1043e-10
_Z_B0 = 5.707e-6
_Z_B1 = -2.051e-8
_Z_C0 = 1.9898e-4
_Z_C1 = -2.376e-6
_Z_D = 1.83e-11
_Z_E = -0.765e-8

DEFAULT_OIL_DENSITY: float = 860.0  # kg/m^3, typical hydraulic oil


def water_density(temp_c: float) -> float:
    """Return the density of air-free water at ``temp_c``.

    Args:
        temp_c (float): Water temperature in °C (valid 0-40 °C).

    Returns:
        float: Density in kg/m^3.

    References:
        Tanaka M. et al., Metrologia 38 (2001) 301-309.
    """
    t = float(temp_c)
    term = ((t + _A1) ** 2 * (t + _A2)) / (_A3 * (t + _A4))
    return _A5 * (1.0 - term)


def saturation_vapour_pressure(temp_c: float) -> float:
    """Saturation vapour pressure of water over a plane surface, in Pa."""
    t_k = float(temp_c) + 273.15
    return math.exp(_SVP_A * t_k**2 + _SVP_B * t_k + _SVP_C + _SVP_D / t_k)


def enhancement_factor(pressure_pa: float, temp_c: float) -> float:
    return _ENH_ALPHA + _ENH_BETA * float(pressure_pa) + _ENH_GAMMA * float(temp_c) ** 2


def compressibility_factor(pressure_pa: float, temp_c: float, xv: float) -> float:
    """CIPM-2007 compressibility factor Z of moist air."""
    p = float(pressure_pa)
    t = float(temp_c)
    t_k = t + 273.15
    return (
        1.0
        - (p / t_k)
        * (
            _Z_A0
            + _Z_A1 * t
            + _Z_A2 * t**2
            + (_Z_B0 + _Z_B1 * t) * xv
            + (_Z_C0 + _Z_C1 * t) * xv**2
        )
        + (p**2 / t_k**2) * (_Z_D + _Z_E * xv**2)
    )


def air_density_cipm(
    temp_c: float,
    pressure_hpa: float,
    humidity_rel: float,
    co2_ppm: float = DEFAULT_CO2_PPM,
) -> float:
    """Return moist-air density from the CIPM-2007 equation.

    Args:
        temp_c (float): Air temperature in °C.
        pressure_hpa (float): Barometric pressure in hPa.
        humidity_rel (float): Relative humidity in percent (0-100).
        co2_ppm (float, optional): CO₂ amount fraction in µmol/mol.
            Defaults to ``400``.

    Returns:
        float: Air density in kg/m^3; about 1.20 kg/m^3 at 20 °C, 1013 hPa
        and 50 %RH.

    Note:
        The mole fraction of water vapour is derived from relative humidity
        through the saturation vapour pressure and the enhancement factor.

    References:
        Picard A. et al., "Revised formula for the density of moist air
        (CIPM-2007)", Metrologia 45 (2008) 149-155.
    """
    t_k = float(temp_c) + 273.15
    p = float(pressure_hpa) * 100.0
    h = float(humidity_rel) / 100.0
    x_co2 = float(co2_ppm) / 1e6

    ma = (28.96546 + 12.011 * (x_co2 - 0.0004)) * 1e-3
    psv = saturation_vapour_pressure(temp_c)
    f = enhancement_factor(p, temp_c)
    xv = h * f * psv / p
    z = compressibility_factor(p, temp_c, xv)
    return (p * ma / (z * _R * t_k)) * (1.0 - xv * (1.0 - _MV / ma))


def fluid_density(
    fluid: CalibrationFluid | str,
    temp_c: float,
    pressure_hpa: float = 1013.25,
    humidity_rel: float = 50.0,
    co2_ppm: float = DEFAULT_CO2_PPM,
    oil_density: float = DEFAULT_OIL_DENSITY,
) -> float:
    """Return the density of the pressure-transmitting fluid.

    Air uses CIPM-2007 with the supplied environment, water uses the Tanaka
    fit at ``temp_c``, and oil returns ``oil_density`` unchanged.
    """
    kind = CalibrationFluid(fluid)
    if kind is CalibrationFluid.AIR:
        return air_density_cipm(temp_c, pressure_hpa, humidity_rel, co2_ppm)
    if kind is CalibrationFluid.WATER:
        return water_density(temp_c)
    return float(oil_density)
