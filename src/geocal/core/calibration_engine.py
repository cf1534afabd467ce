import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from geocal.core.math_engine import (
    apply_helmert,
    calculate_calibration_quality,
    calculate_helmert_2d,
    check_extrapolation,
    inverse_helmert,
)
from geocal.core.projections import EpsgCode, ProjectionRegistry
from geocal.domain.schemas import (
    CalibrationPoint,
    CalibrationQuality,
    CalibrationResult,
    Calibrated,
    CoordinateSystemDefinition,
    GPSPoint,
    ModelUnits,
    Point2D,
    Point3D,
    ProjectCoordinateSettings,
    RealCoordinates,
    Uncalibrated,
)
from geocal.errors import (
    InsufficientPointsError,
    ProjectNotCalibratedError,
    UnknownCoordinateSystemError,
)
from geocal.quality import get_calibration_quality
from geocal.units import from_meters, get_model_units_to_meters, to_meters

logger = logging.getLogger(__name__)


class CoordinateConverter:
    """
    Converts between model coordinates and WGS84 for a project.

    Holds the coordinate system catalogue and the projection registry it was
    built with; every call takes the project settings explicitly.
    """

    def __init__(
        self,
        registry: ProjectionRegistry,
        coordinate_systems: Iterable[CoordinateSystemDefinition],
        quality_policy: Optional[Callable[[float], CalibrationQuality]] = None,
    ):
        self.registry = registry
        self.coordinate_systems: Dict[str, CoordinateSystemDefinition] = {
            cs.id: cs for cs in coordinate_systems
        }
        self.quality_policy = quality_policy or get_calibration_quality
        self.registry.initialize_projections(self.coordinate_systems.values())

    def get_coordinate_system(self, coordinate_system_id: str) -> CoordinateSystemDefinition:
        try:
            return self.coordinate_systems[coordinate_system_id]
        except KeyError:
            raise UnknownCoordinateSystemError(coordinate_system_id)

    # --- Calibration ---

    def perform_calibration(
        self,
        points: Sequence[CalibrationPoint],
        epsg_code: EpsgCode,
        model_units_to_meters: float = 0.001,
    ) -> CalibrationResult:
        """
        Fits the model -> projection transform from the active calibration points.

        Args:
            points: Calibration points; inactive ones are ignored
            epsg_code: Projected CRS the GPS positions are projected into
            model_units_to_meters: Factor from model units to metres

        Returns:
            CalibrationResult with the transform and its quality. The quality
            errors are in the order of the active points.

        Raises:
            InsufficientPointsError: If fewer than 2 points are active
            UnknownCoordinateSystemError: If epsg_code is not registered
        """
        active_points = [p for p in points if p.is_active]
        if len(active_points) < 2:
            raise InsufficientPointsError(len(active_points))

        model_points = [
            Point2D(x=p.model_x * model_units_to_meters, y=p.model_y * model_units_to_meters)
            for p in active_points
        ]
        projected_points = [
            self.registry.gps_to_projection(p.gps_latitude, p.gps_longitude, epsg_code)
            for p in active_points
        ]

        base_params = calculate_helmert_2d(model_points, projected_points)
        quality = calculate_calibration_quality(
            model_points, projected_points, base_params, self.quality_policy
        )

        first = active_points[0]
        params = base_params.with_origins(
            origin_model=Point2D(x=first.model_x, y=first.model_y),
            origin_gps=GPSPoint(lat=first.gps_latitude, lng=first.gps_longitude),
        )

        logger.info(
            "Calibrated %d points against EPSG:%s: rmse=%.3f m, max=%.3f m (%s)",
            len(active_points), epsg_code, quality.rmse, quality.max_error,
            quality.quality.value,
        )
        return CalibrationResult(params=params, quality=quality)

    def calibrate_project(
        self,
        points: Sequence[CalibrationPoint],
        coordinate_system_id: str,
        model_units: Union[ModelUnits, str],
    ) -> CalibrationResult:
        """Calibrates against a catalogue coordinate system, resolving its EPSG code and units."""
        cs = self.get_coordinate_system(coordinate_system_id)
        if not cs.epsg_code:
            raise UnknownCoordinateSystemError(
                coordinate_system_id, "coordinate system has no projection"
            )
        return self.perform_calibration(
            points, cs.epsg_code, get_model_units_to_meters(model_units)
        )

    # --- Conversion ---

    def model_to_gps(
        self,
        x: float,
        y: float,
        z: Optional[float] = None,
        settings: Optional[ProjectCoordinateSettings] = None,
    ) -> GPSPoint:
        """
        Converts a model point to WGS84.

        z is accepted for symmetry with model points and ignored (no vertical datum).
        """
        if settings is None:
            raise TypeError("model_to_gps() requires project settings")

        cs = self.get_coordinate_system(settings.coordinate_system_id)
        x_meters = to_meters(x, settings.model_units)
        y_meters = to_meters(y, settings.model_units)

        georeference = settings.georeference
        if isinstance(georeference, RealCoordinates):
            if cs.epsg_code:
                return self.registry.projection_to_gps(x_meters, y_meters, cs.epsg_code)
            if georeference.origin_gps is not None:
                logger.warning(
                    "Coordinate system %s has no projection; returning calibration origin",
                    cs.id,
                )
                return georeference.origin_gps
            raise ProjectNotCalibratedError(
                f"Coordinate system {cs.id} has no projection for real coordinates"
            )

        if isinstance(georeference, Calibrated):
            transform = georeference.transform
            if cs.epsg_code:
                projected = apply_helmert(Point2D(x=x_meters, y=y_meters), transform)
                return self.registry.projection_to_gps(projected.x, projected.y, cs.epsg_code)
            if transform.origin_gps is not None:
                logger.warning(
                    "Coordinate system %s has no projection; returning calibration origin",
                    cs.id,
                )
                return transform.origin_gps
            raise ProjectNotCalibratedError()

        if isinstance(georeference, Uncalibrated):
            raise ProjectNotCalibratedError()

        raise TypeError(f"Unsupported georeference: {georeference!r}")

    def gps_to_model(
        self,
        lat: float,
        lng: float,
        settings: ProjectCoordinateSettings,
    ) -> Point3D:
        """Converts a WGS84 position to model coordinates; z is always 0."""
        cs = self.get_coordinate_system(settings.coordinate_system_id)
        if not cs.epsg_code:
            raise ProjectNotCalibratedError(
                "Cannot convert GPS to local coordinates without calibration"
            )

        georeference = settings.georeference
        if isinstance(georeference, Uncalibrated):
            raise ProjectNotCalibratedError()

        projected = self.registry.gps_to_projection(lat, lng, cs.epsg_code)

        if isinstance(georeference, RealCoordinates):
            model_meters = projected
        elif isinstance(georeference, Calibrated):
            model_meters = inverse_helmert(projected, georeference.transform)
        else:
            raise TypeError(f"Unsupported georeference: {georeference!r}")

        return Point3D(
            x=from_meters(model_meters.x, settings.model_units),
            y=from_meters(model_meters.y, settings.model_units),
            z=0.0,
        )

    def check_extrapolation(
        self,
        x: float,
        y: float,
        settings: ProjectCoordinateSettings,
        control_points: Sequence[CalibrationPoint],
    ) -> Optional[float]:
        """
        Metres by which a model point lies outside the calibrated area.

        The area is the convex hull of the active control points. Returns None
        when the point is inside or the hull is undefined.
        """
        units = settings.model_units
        hull_points: List[Point2D] = [
            Point2D(x=to_meters(p.model_x, units), y=to_meters(p.model_y, units))
            for p in control_points if p.is_active
        ]
        target = Point2D(x=to_meters(x, units), y=to_meters(y, units))
        max_dist, _ = check_extrapolation([target], hull_points)
        return max_dist
