import json
import math
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class Point2D(BaseModel):
    x: float
    y: float

    model_config = ConfigDict(frozen=True)


class Point3D(Point2D):
    z: float = 0.0


class GPSPoint(BaseModel):
    lat: float
    lng: float
    altitude: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class ModelUnits(str, Enum):
    MILLIMETERS = "millimeters"
    METERS = "meters"
    FEET = "feet"


class CalibrationQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"


class CalibrationPoint(BaseModel):
    """One user-supplied correspondence between a model point and a GPS fix."""
    model_x: float
    model_y: float
    gps_latitude: float = Field(ge=-90.0, le=90.0)
    gps_longitude: float = Field(ge=-180.0, le=180.0)
    is_active: bool = True
    model_z: Optional[float] = None
    gps_altitude: Optional[float] = None
    name: Optional[str] = None
    id: Optional[str] = None

    model_config = ConfigDict(frozen=True, protected_namespaces=())


class CoordinateSystemDefinition(BaseModel):
    id: str
    epsg_code: Optional[int] = None
    proj4_string: Optional[str] = None
    name: Optional[str] = None
    country_code: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(frozen=True)

    @property
    def is_registerable(self) -> bool:
        return bool(self.epsg_code) and bool(self.proj4_string)


def _normalize_rotation(rotation_rad: float) -> float:
    """Wrap an angle into (-pi, pi]."""
    wrapped = math.atan2(math.sin(rotation_rad), math.cos(rotation_rad))
    if wrapped <= -math.pi:
        wrapped = math.pi
    return wrapped


class HelmertTransformParams(BaseModel):
    """
    2D similarity transform  P = t + s * R(theta) * M.

    rotation_deg is derived from rotation_rad and is never stored separately;
    it is still written to JSON so the persisted record stays readable.
    """
    type: Literal["helmert_2d"] = "helmert_2d"
    translation: Point2D
    rotation_rad: float
    scale: float = Field(gt=0.0)
    origin_model: Optional[Point2D] = None
    origin_gps: Optional[GPSPoint] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("rotation_rad")
    @classmethod
    def wrap_rotation(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("rotation_rad must be finite")
        if -math.pi < v <= math.pi:
            return v
        return _normalize_rotation(v)

    @computed_field
    @property
    def rotation_deg(self) -> float:
        return self.rotation_rad * (180.0 / math.pi)

    def with_origins(self, origin_model: Point2D, origin_gps: GPSPoint) -> "HelmertTransformParams":
        return self.model_copy(update={"origin_model": origin_model, "origin_gps": origin_gps})

    def to_json(self) -> str:
        """Serializes the transform to a JSON string."""
        return json.dumps(self.model_dump(mode="json", exclude_none=True), indent=4)

    @classmethod
    def from_json(cls, json_str: str) -> "HelmertTransformParams":
        data = json.loads(json_str)
        if data.get("type", "helmert_2d") != "helmert_2d":
            raise ValueError(f"Invalid transform type: {data.get('type')}")
        return cls.model_validate(data)


class CalibrationQualityResult(BaseModel):
    rmse: float = Field(ge=0.0)
    max_error: float = Field(ge=0.0, alias="maxError")
    errors: List[float]
    quality: CalibrationQuality
    degenerate: bool = False

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class CalibrationResult(BaseModel):
    params: HelmertTransformParams
    quality: CalibrationQualityResult

    model_config = ConfigDict(frozen=True)


# --- Georeference state of a project ---

class RealCoordinates(BaseModel):
    """
    Model coordinates are already projected coordinates of the CRS.

    origin_gps is kept from an earlier calibration, if any, and answers
    model -> GPS when the coordinate system has no projection.
    """
    kind: Literal["real_coordinates"] = "real_coordinates"
    origin_gps: Optional[GPSPoint] = None

    model_config = ConfigDict(frozen=True)


class Calibrated(BaseModel):
    """Model coordinates map to the CRS through a fitted transform."""
    kind: Literal["calibrated"] = "calibrated"
    transform: HelmertTransformParams

    model_config = ConfigDict(frozen=True)


class Uncalibrated(BaseModel):
    kind: Literal["uncalibrated"] = "uncalibrated"

    model_config = ConfigDict(frozen=True)


Georeference = Annotated[
    Union[RealCoordinates, Calibrated, Uncalibrated],
    Field(discriminator="kind"),
]


class ProjectCoordinateSettings(BaseModel):
    coordinate_system_id: str
    model_units: ModelUnits = ModelUnits.MILLIMETERS
    georeference: Georeference = Field(default_factory=Uncalibrated)

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    @property
    def model_has_real_coordinates(self) -> bool:
        return isinstance(self.georeference, RealCoordinates)

    @property
    def transform_matrix(self) -> Optional[HelmertTransformParams]:
        if isinstance(self.georeference, Calibrated):
            return self.georeference.transform
        return None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ProjectCoordinateSettings":
        """
        Builds settings from the flat persisted shape
        (model_has_real_coordinates, transform_matrix).

        Real coordinates win over a stored transform, matching the order
        in which conversions are resolved; only its origin_gps is kept.
        """
        georeference: Union[RealCoordinates, Calibrated, Uncalibrated]
        matrix = record.get("transform_matrix")
        transform: Optional[HelmertTransformParams] = None
        if matrix:
            if isinstance(matrix, str):
                transform = HelmertTransformParams.from_json(matrix)
            else:
                transform = HelmertTransformParams.model_validate(matrix)

        if record.get("model_has_real_coordinates"):
            georeference = RealCoordinates(
                origin_gps=transform.origin_gps if transform is not None else None
            )
        elif transform is not None:
            georeference = Calibrated(transform=transform)
        else:
            georeference = Uncalibrated()

        return cls(
            coordinate_system_id=record["coordinate_system_id"],
            model_units=record.get("model_units") or ModelUnits.MILLIMETERS,
            georeference=georeference,
        )
