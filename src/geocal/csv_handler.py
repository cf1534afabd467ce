from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

from geocal.angles import parse_angle
from geocal.domain.schemas import CalibrationPoint

REQUIRED_COLUMNS = ("model_x", "model_y", "gps_latitude", "gps_longitude")

_COLUMN_ALIASES = {
    "x": "model_x",
    "y": "model_y",
    "z": "model_z",
    "lat": "gps_latitude",
    "latitude": "gps_latitude",
    "lon": "gps_longitude",
    "lng": "gps_longitude",
    "longitude": "gps_longitude",
    "h": "gps_altitude",
    "altitude": "gps_altitude",
    "point": "name",
    "active": "is_active",
}

_TRUE_VALUES = {"1", "true", "yes", "y", "t"}


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def read_calibration_points(path: str | Path) -> List[CalibrationPoint]:
    """
    Reads calibration points from a CSV file.

    Column names are case-insensitive; GPS columns accept decimal degrees or
    DMS strings. Rows without an is_active column are active.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [c.strip().lower() for c in df.columns]
    df = df.rename(columns={k: v for k, v in _COLUMN_ALIASES.items() if v not in df.columns})

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"CSV must include columns {', '.join(missing)} (got {list(df.columns)})")

    points: List[CalibrationPoint] = []
    for row in df.to_dict("records"):
        if not any(str(row[c]).strip() for c in REQUIRED_COLUMNS):
            continue

        model_z = str(row.get("model_z", "")).strip()
        altitude = str(row.get("gps_altitude", "")).strip()
        active = str(row.get("is_active", "")).strip()

        points.append(
            CalibrationPoint(
                name=str(row.get("name", "")).strip() or None,
                model_x=float(row["model_x"]),
                model_y=float(row["model_y"]),
                model_z=float(model_z) if model_z else None,
                gps_latitude=parse_angle(row["gps_latitude"]),
                gps_longitude=parse_angle(row["gps_longitude"]),
                gps_altitude=float(altitude) if altitude else None,
                is_active=_parse_bool(active) if active else True,
            )
        )
    return points


def save_results_csv(path: str | Path, df: pd.DataFrame) -> None:
    """Saves a Pandas DataFrame to CSV."""
    df.to_csv(path, index=False)
