"""
Environmental physics for pressure calibration corrections.

This subpackage supplies the fluid density and local gravity that feed the
hydrostatic head correction applied to a standard's reading before its
correction model is queried.

Modules:
    density:
        Water density (Tanaka fit, 0-40 °C) and moist-air density
        (CIPM-2007), plus a dispatcher by calibration fluid.

    gravity:
        International gravity formula with free-air height correction and
        the ``ΔP = ρ·g·h`` head correction.

Design Principle:
    Pure, side-effect-free functions with no dependency on the statistics
    subpackage.
"""

from .density import air_density_cipm, fluid_density, water_density
from .gravity import head_correction, head_correction_pa, local_gravity

__all__ = [
    "air_density_cipm",
    "fluid_density",
    "water_density",
    "head_correction",
    "head_correction_pa",
    "local_gravity",
]
