import json
import math

import pytest
from pydantic import ValidationError

from geocal.config import DEFAULT_COORDINATE_SYSTEMS, Settings, load_coordinate_systems
from geocal.domain.schemas import (
    Calibrated,
    CalibrationPoint,
    CalibrationQuality,
    CalibrationQualityResult,
    GPSPoint,
    HelmertTransformParams,
    ModelUnits,
    Point2D,
    ProjectCoordinateSettings,
    RealCoordinates,
    Uncalibrated,
)
from geocal.quality import QualityThresholds, get_calibration_quality, make_quality_policy


def _params(**kwargs):
    values = dict(translation=Point2D(x=542000.0, y=6589000.0), rotation_rad=0.25, scale=1.0002)
    values.update(kwargs)
    return HelmertTransformParams(**values)


class TestHelmertTransformParams:

    def test_rotation_deg_is_derived(self):
        params = _params(rotation_rad=math.pi / 4)
        assert params.rotation_deg == pytest.approx(45.0)

    def test_rotation_is_wrapped(self):
        params = _params(rotation_rad=3 * math.pi / 2)
        assert params.rotation_rad == pytest.approx(-math.pi / 2)

    def test_pi_is_kept(self):
        assert _params(rotation_rad=math.pi).rotation_rad == math.pi
        assert _params(rotation_rad=-math.pi).rotation_rad == pytest.approx(math.pi)

    @pytest.mark.parametrize("scale", [0.0, -1.0])
    def test_scale_must_be_positive(self, scale):
        with pytest.raises(ValidationError):
            _params(scale=scale)

    def test_rotation_must_be_finite(self):
        with pytest.raises(ValidationError):
            _params(rotation_rad=float("nan"))

    def test_json_contains_readable_fields(self):
        data = json.loads(_params().to_json())
        assert data["type"] == "helmert_2d"
        assert data["rotation_deg"] == pytest.approx(math.degrees(0.25))
        assert "origin_model" not in data

    def test_json_round_trip_with_origins(self):
        params = _params().with_origins(Point2D(x=0.0, y=0.0), GPSPoint(lat=59.4, lng=24.7))
        restored = HelmertTransformParams.from_json(params.to_json())
        assert restored == params
        assert restored.origin_gps == GPSPoint(lat=59.4, lng=24.7)

    def test_from_json_rejects_other_types(self):
        data = json.loads(_params().to_json())
        data["type"] = "affine"
        with pytest.raises(ValueError, match="Invalid transform type"):
            HelmertTransformParams.from_json(json.dumps(data))

    def test_is_immutable(self):
        params = _params()
        with pytest.raises(ValidationError):
            params.scale = 2.0


class TestCalibrationPoint:

    def test_defaults(self):
        point = CalibrationPoint(model_x=1, model_y=2, gps_latitude=59.0, gps_longitude=24.0)
        assert point.is_active is True
        assert point.model_z is None

    @pytest.mark.parametrize("lat, lng", [(91.0, 0.0), (-90.5, 0.0), (0.0, 181.0)])
    def test_gps_range(self, lat, lng):
        with pytest.raises(ValidationError):
            CalibrationPoint(model_x=0, model_y=0, gps_latitude=lat, gps_longitude=lng)


class TestQualityResult:

    def test_max_error_alias(self):
        result = CalibrationQualityResult(
            rmse=0.1, maxError=0.2, errors=[0.1], quality=CalibrationQuality.GOOD
        )
        assert result.max_error == 0.2
        assert result.model_dump(by_alias=True)["maxError"] == 0.2


class TestProjectCoordinateSettings:

    def test_default_is_uncalibrated(self):
        settings = ProjectCoordinateSettings(coordinate_system_id="ee_l_est97")
        assert isinstance(settings.georeference, Uncalibrated)
        assert settings.model_units == ModelUnits.MILLIMETERS
        assert settings.transform_matrix is None
        assert not settings.model_has_real_coordinates

    def test_from_record_with_json_matrix(self):
        settings = ProjectCoordinateSettings.from_record({
            "coordinate_system_id": "ee_l_est97",
            "model_units": "meters",
            "transform_matrix": _params().to_json(),
        })
        assert isinstance(settings.georeference, Calibrated)
        assert settings.transform_matrix == _params()
        assert settings.model_units == ModelUnits.METERS

    def test_from_record_with_dict_matrix(self):
        settings = ProjectCoordinateSettings.from_record({
            "coordinate_system_id": "ee_l_est97",
            "transform_matrix": json.loads(_params().to_json()),
        })
        assert settings.transform_matrix == _params()

    def test_real_coordinates_win(self):
        settings = ProjectCoordinateSettings.from_record({
            "coordinate_system_id": "ee_l_est97",
            "model_has_real_coordinates": True,
            "transform_matrix": _params().to_json(),
        })
        assert isinstance(settings.georeference, RealCoordinates)
        assert settings.transform_matrix is None
        assert settings.georeference.origin_gps is None

    def test_real_coordinates_keep_stored_origin(self):
        transform = _params().with_origins(Point2D(x=0.0, y=0.0), GPSPoint(lat=59.4, lng=24.7))
        settings = ProjectCoordinateSettings.from_record({
            "coordinate_system_id": "local_calibrated",
            "model_has_real_coordinates": True,
            "transform_matrix": transform.to_json(),
        })
        assert settings.georeference == RealCoordinates(origin_gps=GPSPoint(lat=59.4, lng=24.7))

    def test_discriminated_union_from_dict(self):
        settings = ProjectCoordinateSettings.model_validate({
            "coordinate_system_id": "ee_l_est97",
            "georeference": {"kind": "calibrated", "transform": json.loads(_params().to_json())},
        })
        assert settings.transform_matrix == _params()


class TestQualityThresholds:

    @pytest.mark.parametrize("rmse, expected", [
        (0.0, CalibrationQuality.EXCELLENT),
        (0.05, CalibrationQuality.EXCELLENT),
        (0.1, CalibrationQuality.GOOD),
        (0.5, CalibrationQuality.ACCEPTABLE),
        (0.51, CalibrationQuality.POOR),
    ])
    def test_default_buckets(self, rmse, expected):
        assert get_calibration_quality(rmse) == expected

    def test_custom_policy(self):
        policy = make_quality_policy(QualityThresholds(0.001, 0.002, 0.003))
        assert policy(0.0025) == CalibrationQuality.ACCEPTABLE

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValueError):
            QualityThresholds(excellent_rmse_m=0.3, good_rmse_m=0.2)


class TestSettings:

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("GEOCAL_GOOD_RMSE_M", "0.25")
        monkeypatch.setenv("GEOCAL_LOG_FORMAT", "json")
        settings = Settings()
        assert settings.quality_thresholds.good_rmse_m == 0.25
        assert settings.log_format == "json"

    def test_default_catalogue(self):
        systems = load_coordinate_systems(Settings())
        assert [cs.id for cs in systems] == [cs.id for cs in DEFAULT_COORDINATE_SYSTEMS]

    def test_catalogue_file(self, tmp_path):
        path = tmp_path / "systems.json"
        path.write_text(json.dumps([
            {"id": "utm35n", "epsg_code": 32635,
             "proj4_string": "+proj=utm +zone=35 +datum=WGS84 +units=m +no_defs"},
            {"id": "retired", "epsg_code": 3300, "proj4_string": "+proj=longlat", "is_active": False},
        ]))
        systems = load_coordinate_systems(Settings(coordinate_systems_file=path))
        assert [cs.id for cs in systems] == ["utm35n"]
