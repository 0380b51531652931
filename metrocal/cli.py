"""
Command line entry point: fit a reference standard and evaluate a session.
"""

# Pipeline overview:
# 1) Load the standard's certificate points from CSV and fit the value and
#    uncertainty models (with validation and the AICc best-fit verdict).
# 2) Write the validation reports, the model comparison table and plots.
# 3) Optionally load a session CSV, resolve fluid density and local gravity
#    from the environment, and compute per-point results and compliance.

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .calibration import compute_results, resolve_fluid_density, resolve_gravity
from .config import DEFAULT_CO2_PPM
from .data_processing import load_session_points, load_standard_points
from .models import CalibrationFluid, CurveModel, EnvReading, Instrument, ReferenceStandard
from .output import save_regression_tables, save_results_to_csv
from .reporting import format_result_line, render_validation_report, write_report_file
from .stats.analysis import compare_models

LOGGER = logging.getLogger("metrocal")

_MODEL_CHOICES = [m.value for m in CurveModel]


def configure_logging(log_file: Optional[str] = "metrocal.log", level: int = logging.INFO) -> None:
    """Log to stdout and, when ``log_file`` is given, to a file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metrocal",
        description="Fit a reference standard's correction model and compute calibration results.",
    )
    parser.add_argument("standard_csv", help="Certificate points of the reference standard.")
    parser.add_argument("--session", dest="session_csv", help="Calibration session test points.")
    parser.add_argument("--name", default=None, help="Standard name (defaults to the file stem).")
    parser.add_argument("--unit", default="bar", help="Unit of the standard's readings.")
    parser.add_argument("--value-model", default=CurveModel.LINEAR.value, choices=_MODEL_CHOICES)
    parser.add_argument("--uncertainty-model", default=CurveModel.LINEAR.value, choices=_MODEL_CHOICES)
    parser.add_argument(
        "--sub-models",
        nargs=2,
        metavar=("LOW", "HIGH"),
        choices=_MODEL_CHOICES,
        help="Segment families for piecewise_mixed.",
    )

    inst = parser.add_argument_group("instrument under test")
    inst.add_argument("--range-min", type=float, default=None)
    inst.add_argument("--range-max", type=float, default=None)
    inst.add_argument("--resolution", type=float, default=0.01)
    inst.add_argument("--accuracy-class", type=float, default=0.5, help="MPE in %% of range max.")
    inst.add_argument("--include-type-a", action="store_true", help="Add repeatability and hysteresis to U.")

    env = parser.add_argument_group("environment")
    env.add_argument("--fluid", default=CalibrationFluid.AIR.value, choices=[f.value for f in CalibrationFluid])
    env.add_argument("--fluid-density", type=float, default=None, help="Override density in kg/m^3.")
    env.add_argument("--temp", type=float, default=20.0, help="Temperature in °C.")
    env.add_argument("--humidity", type=float, default=50.0, help="Relative humidity in %%.")
    env.add_argument("--pressure", type=float, default=1013.25, help="Barometric pressure in hPa.")
    env.add_argument("--co2", type=float, default=DEFAULT_CO2_PPM, help="CO2 in ppm.")
    env.add_argument("--height-diff", type=float, default=0.0, help="Head height in cm.")
    env.add_argument("--latitude", type=float, default=None)
    env.add_argument("--altitude", type=float, default=None, help="Site height in m.")

    parser.add_argument("--output-dir", default="output")
    parser.add_argument("--log-file", default="metrocal.log")
    parser.add_argument("--no-plots", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _write_plots(standard: ReferenceStandard, output_dir: str) -> list[str]:
    import matplotlib.pyplot as plt

    from .plotting import plot_calibration_curve, plot_residuals

    points = standard.sorted_points
    x = [p.indication for p in points]
    y = [p.reference_value for p in points]
    fitted = standard.regressions
    figures_dir = Path(output_dir) / "figures"
    paths = []
    fig = plot_calibration_curve(x, y, fitted.value_regression, figures_dir / "value_model", unit=standard.unit)
    plt.close(fig)
    paths.append(str(figures_dir / "value_model.png"))
    fig = plot_residuals(fitted.value_regression, x, figures_dir / "value_model_residuals")
    plt.close(fig)
    paths.append(str(figures_dir / "value_model_residuals.png"))
    return paths


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main execution function; returns the process exit status."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_file, logging.DEBUG if args.verbose else logging.INFO)

    start_time = time.time()
    LOGGER.info("Loading standard points from %s", args.standard_csv)
    points = load_standard_points(args.standard_csv)
    if not points:
        LOGGER.error("No valid calibration points in %s. Terminating execution.", args.standard_csv)
        return 1

    indications = [p.indication for p in points]
    standard = ReferenceStandard(
        name=args.name or Path(args.standard_csv).stem,
        unit=args.unit,
        resolution=args.resolution,
        range_min=min(indications),
        range_max=max(indications),
        calibration_points=points,
        value_model=CurveModel(args.value_model),
        uncertainty_model=CurveModel(args.uncertainty_model),
        sub_models=tuple(CurveModel(m) for m in args.sub_models) if args.sub_models else None,
    )
    fitted = standard.regressions

    os.makedirs(args.output_dir, exist_ok=True)
    outputs = []
    for label, result in (
        ("value_model", fitted.value_regression),
        ("uncertainty_model", fitted.uncertainty_regression),
    ):
        report = render_validation_report(result, title=f"{standard.name}: {label.replace('_', ' ')}")
        print(report)
        outputs.append(write_report_file(report, args.output_dir, f"{label}_report"))

    x = [p.indication for p in standard.sorted_points]
    y = [p.reference_value for p in standard.sorted_points]
    tables = save_regression_tables(
        fitted.value_regression, compare_models(x, y), args.output_dir, prefix="value_model"
    )
    outputs.extend(tables.values())

    if not args.no_plots:
        outputs.extend(_write_plots(standard, args.output_dir))

    if args.session_csv:
        session = load_session_points(args.session_csv)
        if not session:
            LOGGER.error("No valid session points in %s. Terminating execution.", args.session_csv)
            return 1
        instrument = Instrument(
            range_min=args.range_min if args.range_min is not None else standard.range_min,
            range_max=args.range_max if args.range_max is not None else standard.range_max,
            resolution=args.resolution,
            accuracy_class=args.accuracy_class,
            unit=args.unit,
        )
        if args.fluid_density is not None:
            density = args.fluid_density
        else:
            density = resolve_fluid_density(
                args.fluid,
                [EnvReading(temp=args.temp, humidity=args.humidity, pressure=args.pressure)],
                co2_ppm=args.co2,
            )
        gravity = resolve_gravity(args.latitude, args.altitude)
        LOGGER.info("Fluid density %.4f kg/m3, gravity %.5f m/s2", density, gravity)

        results = compute_results(
            session,
            instrument,
            standard,
            fluid_density=density,
            height_diff=args.height_diff,
            gravity=gravity,
            include_type_a=args.include_type_a,
        )
        for res in results:
            LOGGER.info("  %s", format_result_line(res, args.unit))
        outputs.append(save_results_to_csv(results, args.output_dir))

    LOGGER.info("Total execution time: %.2f seconds", time.time() - start_time)
    LOGGER.info("Generated output files:")
    for path in outputs:
        LOGGER.info("  - %s", path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
