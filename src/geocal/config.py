"""
Configuration for geocal.

Settings are read from environment variables prefixed with GEOCAL_ (or a
.env file). The coordinate system catalogue is static configuration; a JSON
file named by GEOCAL_COORDINATE_SYSTEMS_FILE replaces the built-in list.
"""

import json
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import TypeAdapter
from pydantic_settings import BaseSettings, SettingsConfigDict

from geocal.domain.schemas import CoordinateSystemDefinition, ModelUnits
from geocal.quality import QualityThresholds


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Attributes:
        log_level: Root log level name
        log_format: "text" for humans, "json" for log shippers
        default_model_units: Units assumed when none are given
        excellent_rmse_m: Upper RMSE bound of an excellent calibration
        good_rmse_m: Upper RMSE bound of a good calibration
        acceptable_rmse_m: Upper RMSE bound of an acceptable calibration
        coordinate_systems_file: Optional JSON list of coordinate systems
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="GEOCAL_",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    default_model_units: ModelUnits = ModelUnits.MILLIMETERS

    excellent_rmse_m: float = 0.05
    good_rmse_m: float = 0.2
    acceptable_rmse_m: float = 0.5

    coordinate_systems_file: Optional[Path] = None

    @property
    def quality_thresholds(self) -> QualityThresholds:
        return QualityThresholds(
            excellent_rmse_m=self.excellent_rmse_m,
            good_rmse_m=self.good_rmse_m,
            acceptable_rmse_m=self.acceptable_rmse_m,
        )


DEFAULT_COORDINATE_SYSTEMS: List[CoordinateSystemDefinition] = [
    CoordinateSystemDefinition(
        id="local_calibrated",
        name="Local (calibrated)",
        country_code="LOCAL",
    ),
    CoordinateSystemDefinition(
        id="ee_l_est97",
        epsg_code=3301,
        name="L-EST97",
        country_code="EE",
        proj4_string=(
            "+proj=lcc +lat_0=57.5175539305556 +lon_0=24 +lat_1=59.3333333333333 "
            "+lat_2=58 +x_0=500000 +y_0=6375000 +ellps=GRS80 "
            "+towgs84=0,0,0,0,0,0,0 +units=m +no_defs"
        ),
    ),
    CoordinateSystemDefinition(
        id="lv_lks92",
        epsg_code=3059,
        name="LKS-92 / Latvia TM",
        country_code="LV",
        proj4_string=(
            "+proj=tmerc +lat_0=0 +lon_0=24 +k=0.9996 +x_0=500000 +y_0=-6000000 "
            "+ellps=GRS80 +towgs84=0,0,0,0,0,0,0 +units=m +no_defs"
        ),
    ),
    CoordinateSystemDefinition(
        id="lt_lks94",
        epsg_code=3346,
        name="LKS94 / Lithuania TM",
        country_code="LT",
        proj4_string=(
            "+proj=tmerc +lat_0=0 +lon_0=24 +k=0.9998 +x_0=500000 +y_0=0 "
            "+ellps=GRS80 +towgs84=0,0,0,0,0,0,0 +units=m +no_defs"
        ),
    ),
    CoordinateSystemDefinition(
        id="be_lambert72",
        epsg_code=31370,
        name="Belgian Lambert 72",
        country_code="BE",
        proj4_string=(
            "+proj=lcc +lat_0=90 +lon_0=4.36748666666667 +lat_1=51.1666672333333 "
            "+lat_2=49.8333339 +x_0=150000.013 +y_0=5400088.438 +ellps=intl "
            "+towgs84=-106.8686,52.2978,-103.7239,0.3366,-0.457,1.8422,-1.2747 "
            "+units=m +no_defs"
        ),
    ),
    CoordinateSystemDefinition(
        id="utm35n",
        epsg_code=32635,
        name="WGS 84 / UTM zone 35N",
        country_code="FI",
        proj4_string="+proj=utm +zone=35 +datum=WGS84 +units=m +no_defs",
    ),
]

_definitions_adapter = TypeAdapter(List[CoordinateSystemDefinition])


def load_coordinate_systems(settings: Optional[Settings] = None) -> List[CoordinateSystemDefinition]:
    """Returns the configured coordinate system catalogue (active entries only)."""
    settings = settings or get_settings()
    if settings.coordinate_systems_file is None:
        definitions = list(DEFAULT_COORDINATE_SYSTEMS)
    else:
        with open(settings.coordinate_systems_file, "r", encoding="utf-8") as f:
            definitions = _definitions_adapter.validate_python(json.load(f))
    return [cs for cs in definitions if cs.is_active]


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
