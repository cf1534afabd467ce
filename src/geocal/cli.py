import warnings
from pathlib import Path
from typing import List, NoReturn, Optional

import pandas as pd
import typer

from geocal.config import get_settings, load_coordinate_systems
from geocal.core.calibration_engine import CoordinateConverter
from geocal.core.projections import ProjectionRegistry
from geocal.csv_handler import read_calibration_points, save_results_csv
from geocal.domain.schemas import (
    CalibrationPoint,
    Calibrated,
    GPSPoint,
    HelmertTransformParams,
    ModelUnits,
    ProjectCoordinateSettings,
    RealCoordinates,
    Uncalibrated,
)
from geocal.errors import GeocalError
from geocal.geodesy import format_gps_coordinate, gps_distance_meters, google_maps_url
from geocal.logging_config import setup_logging
from geocal.quality import make_quality_policy

__version__ = "0.3.0"

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
) -> None:
    """geocal: calibrate model coordinates to GPS."""
    setup_logging(log_level)


def _build_converter() -> CoordinateConverter:
    settings = get_settings()
    return CoordinateConverter(
        ProjectionRegistry(),
        load_coordinate_systems(settings),
        quality_policy=make_quality_policy(settings.quality_thresholds),
    )


def _project_settings(
    crs: str,
    units: ModelUnits,
    params: Optional[Path],
    real_coordinates: bool,
) -> ProjectCoordinateSettings:
    if real_coordinates:
        georeference = RealCoordinates()
    elif params is not None:
        transform = HelmertTransformParams.from_json(params.read_text(encoding="utf-8"))
        georeference = Calibrated(transform=transform)
    else:
        georeference = Uncalibrated()
    return ProjectCoordinateSettings(
        coordinate_system_id=crs, model_units=units, georeference=georeference
    )


def _fail(error: Exception) -> NoReturn:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Print version."""
    typer.echo(f"geocal {__version__}")


@app.command()
def systems() -> None:
    """List the configured coordinate systems."""
    for cs in load_coordinate_systems():
        epsg = f"EPSG:{cs.epsg_code}" if cs.epsg_code else "-"
        typer.echo(f"{cs.id:<20} {epsg:<12} {cs.name or ''}")


@app.command()
def calibrate(
    points_csv: Path = typer.Option(..., "--points", exists=True, readable=True, help="CSV with model_x,model_y,gps_latitude,gps_longitude"),
    crs: str = typer.Option(..., "--crs", help="Coordinate system id (see `geocal systems`)"),
    units: ModelUnits = typer.Option(ModelUnits.MILLIMETERS, "--units", help="Model units"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the transform as JSON"),
    residuals_csv: Optional[Path] = typer.Option(None, "--residuals-csv", help="Write per-point errors as CSV"),
) -> None:
    """
    Fits the model-to-GPS transform from calibration points and reports its quality.
    """
    try:
        points = read_calibration_points(points_csv)
        result = _build_converter().calibrate_project(points, crs, units)
    except (GeocalError, ValueError) as e:
        _fail(e)

    params = result.params
    quality = result.quality
    typer.echo(f"Scale:       {params.scale:.9f}")
    typer.echo(f"Rotation:    {params.rotation_deg:.6f} deg")
    typer.echo(f"Translation: {params.translation.x:.3f}, {params.translation.y:.3f}")
    typer.echo(f"RMSE:        {quality.rmse:.3f} m")
    typer.echo(f"Max error:   {quality.max_error:.3f} m")
    typer.echo(f"Quality:     {quality.quality.value}")
    if quality.degenerate:
        typer.echo("Warning: calibration points coincide; rotation and scale are undetermined.", err=True)

    active = [p for p in points if p.is_active]
    for i, (point, error) in enumerate(zip(active, quality.errors), start=1):
        typer.echo(f"  {point.name or i}: {error:.3f} m")

    if output:
        output.write_text(params.to_json(), encoding="utf-8")
        typer.echo(f"Transform saved to: {output}")

    if residuals_csv:
        save_results_csv(residuals_csv, pd.DataFrame({
            "name": [p.name or str(i) for i, p in enumerate(active, start=1)],
            "model_x": [p.model_x for p in active],
            "model_y": [p.model_y for p in active],
            "error_m": quality.errors,
        }))
        typer.echo(f"Residuals saved to: {residuals_csv}")


@app.command("model-to-gps")
def model_to_gps(
    x: float = typer.Argument(..., help="Model X"),
    y: float = typer.Argument(..., help="Model Y"),
    crs: str = typer.Option(..., "--crs", help="Coordinate system id"),
    units: ModelUnits = typer.Option(ModelUnits.MILLIMETERS, "--units", help="Model units"),
    params: Optional[Path] = typer.Option(None, "--params", exists=True, readable=True, help="Transform JSON from `calibrate`"),
    real_coordinates: bool = typer.Option(False, "--real-coordinates", help="Model coordinates are already projected"),
    points_csv: Optional[Path] = typer.Option(None, "--points", exists=True, readable=True, help="Calibration points, to warn about extrapolation"),
) -> None:
    """Convert a model point to WGS84."""
    try:
        settings = _project_settings(crs, units, params, real_coordinates)
        converter = _build_converter()
        gps = converter.model_to_gps(x, y, None, settings)
        control_points: List[CalibrationPoint] = (
            read_calibration_points(points_csv) if points_csv else []
        )
        outside = converter.check_extrapolation(x, y, settings, control_points)
    except (GeocalError, ValueError) as e:
        _fail(e)

    if outside is not None:
        warnings.warn(
            f"Extrapolation detected: point lies {outside:.3f} m outside the calibrated area"
        )
    typer.echo(format_gps_coordinate(gps))
    typer.echo(google_maps_url(gps))


@app.command("gps-to-model")
def gps_to_model(
    lat: float = typer.Argument(..., help="Latitude (deg)"),
    lng: float = typer.Argument(..., help="Longitude (deg)"),
    crs: str = typer.Option(..., "--crs", help="Coordinate system id"),
    units: ModelUnits = typer.Option(ModelUnits.MILLIMETERS, "--units", help="Model units"),
    params: Optional[Path] = typer.Option(None, "--params", exists=True, readable=True, help="Transform JSON from `calibrate`"),
    real_coordinates: bool = typer.Option(False, "--real-coordinates", help="Model coordinates are already projected"),
) -> None:
    """Convert a WGS84 position to model coordinates."""
    try:
        settings = _project_settings(crs, units, params, real_coordinates)
        point = _build_converter().gps_to_model(lat, lng, settings)
    except (GeocalError, ValueError) as e:
        _fail(e)

    typer.echo(f"{point.x:.3f}, {point.y:.3f}, {point.z:.3f}")


@app.command()
def distance(
    lat1: float = typer.Argument(...),
    lng1: float = typer.Argument(...),
    lat2: float = typer.Argument(...),
    lng2: float = typer.Argument(...),
) -> None:
    """Great-circle distance between two GPS points in metres."""
    meters = gps_distance_meters(GPSPoint(lat=lat1, lng=lng1), GPSPoint(lat=lat2, lng=lng2))
    typer.echo(f"{meters:.3f}")


if __name__ == "__main__":
    app()
