import logging
import math
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from geocal.domain.schemas import CoordinateSystemDefinition, GPSPoint, Point2D
from geocal.errors import InvalidProjectionError, ProjectionError, UnknownCoordinateSystemError

logger = logging.getLogger(__name__)

WGS84 = "EPSG:4326"

EpsgCode = Union[int, str]


def epsg_key(epsg_code: EpsgCode) -> str:
    """Normalizes 3301, "3301" and "EPSG:3301" to "EPSG:3301"."""
    code = str(epsg_code).strip()
    if code.upper().startswith("EPSG:"):
        code = code[5:]
    return f"EPSG:{int(code)}"


@dataclass(frozen=True)
class RegisteredProjection:
    """A projected CRS with transformers to and from WGS84 (lon/lat order)."""
    key: str
    proj4_string: str
    crs: CRS
    to_projection: Transformer
    to_gps: Transformer


class ProjectionRegistry:
    """
    Maps EPSG keys to projected coordinate systems.

    Definitions are written once per key and read afterwards; registering a
    key that is already present is a no-op.
    """

    def __init__(self, definitions: Optional[Iterable[CoordinateSystemDefinition]] = None):
        self._projections: Dict[str, RegisteredProjection] = {}
        self._lock = threading.Lock()
        if definitions is not None:
            self.initialize_projections(definitions)

    def initialize_projections(self, definitions: Iterable[CoordinateSystemDefinition]) -> int:
        """
        Registers every definition carrying both an EPSG code and a proj4 string.

        Returns the number of newly registered systems.
        """
        added = 0
        for cs in definitions:
            if not cs.is_registerable:
                continue
            if self.register(cs.epsg_code, cs.proj4_string):
                added += 1
        if added:
            logger.debug("Registered %d coordinate systems", added)
        return added

    def register(self, epsg_code: EpsgCode, proj4_string: str) -> bool:
        key = epsg_key(epsg_code)
        if key in self._projections:
            return False

        with self._lock:
            if key in self._projections:
                return False
            try:
                crs = CRS.from_proj4(proj4_string)
                to_projection = Transformer.from_crs(WGS84, crs, always_xy=True)
                to_gps = Transformer.from_crs(crs, WGS84, always_xy=True)
            except (CRSError, ProjError) as e:
                raise InvalidProjectionError(f"Cannot register {key}: {e}")

            self._projections[key] = RegisteredProjection(
                key=key,
                proj4_string=proj4_string,
                crs=crs,
                to_projection=to_projection,
                to_gps=to_gps,
            )
        logger.debug("Registered %s: %s", key, proj4_string)
        return True

    def is_registered(self, epsg_code: EpsgCode) -> bool:
        return epsg_key(epsg_code) in self._projections

    def registered_codes(self) -> List[str]:
        return sorted(self._projections)

    def get(self, epsg_code: EpsgCode) -> RegisteredProjection:
        key = epsg_key(epsg_code)
        try:
            return self._projections[key]
        except KeyError:
            raise UnknownCoordinateSystemError(key, "projection not registered")

    def get_crs(self, epsg_code: EpsgCode) -> CRS:
        return self.get(epsg_code).crs

    def gps_to_projection(self, lat: float, lng: float, epsg_code: EpsgCode) -> Point2D:
        """Converts WGS84 degrees to projected metres."""
        projection = self.get(epsg_code)
        try:
            x, y = projection.to_projection.transform(lng, lat)
        except ProjError as e:
            raise ProjectionError(f"Projection to {projection.key} failed: {e}")
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ProjectionError(
                f"Projection to {projection.key} failed for lat={lat}, lng={lng}"
            )
        return Point2D(x=x, y=y)

    def projection_to_gps(self, x: float, y: float, epsg_code: EpsgCode) -> GPSPoint:
        """Converts projected metres to WGS84 degrees."""
        projection = self.get(epsg_code)
        try:
            lng, lat = projection.to_gps.transform(x, y)
        except ProjError as e:
            raise ProjectionError(f"Projection from {projection.key} failed: {e}")
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ProjectionError(
                f"Projection from {projection.key} failed for x={x}, y={y}"
            )
        return GPSPoint(lat=lat, lng=lng)


# Process-wide registry for callers using the module-level functions.
default_registry = ProjectionRegistry()


def initialize_projections(definitions: Iterable[CoordinateSystemDefinition]) -> int:
    return default_registry.initialize_projections(definitions)


def gps_to_projection(lat: float, lng: float, epsg_code: EpsgCode) -> Point2D:
    return default_registry.gps_to_projection(lat, lng, epsg_code)


def projection_to_gps(x: float, y: float, epsg_code: EpsgCode) -> GPSPoint:
    return default_registry.projection_to_gps(x, y, epsg_code)
