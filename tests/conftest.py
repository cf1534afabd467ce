"""
Shared fixtures: a projection registry with the built-in catalogue and a
synthetic calibration dataset with a KNOWN true transformation.

True transformation (model metres -> L-EST97 metres, EPSG:3301):
    scale    = 1.0002
    rotation = 12.5 deg
    t        = (542000.0, 6589000.0)

Model points are given in millimetres. GPS positions are derived by
applying the true transform and projecting back to WGS84 with pyproj, so a
noise-free calibration must recover the transform to machine precision.
"""

import math

import numpy as np
import pytest

from geocal.config import DEFAULT_COORDINATE_SYSTEMS
from geocal.core.calibration_engine import CoordinateConverter
from geocal.core.projections import ProjectionRegistry
from geocal.domain.schemas import CalibrationPoint

EPSG_L_EST97 = 3301
CRS_ID = "ee_l_est97"

SCALE_TRUE = 1.0002
ROTATION_DEG_TRUE = 12.5
TX_TRUE = 542000.0
TY_TRUE = 6589000.0

MODEL_X_MM = np.array([0.0, 50000.0, 50000.0, 0.0, 25000.0])
MODEL_Y_MM = np.array([0.0, 0.0, 30000.0, 30000.0, 15000.0])
POINT_NAMES = ["C1", "C2", "C3", "C4", "C5"]


def true_projected(model_x_m, model_y_m):
    theta = math.radians(ROTATION_DEG_TRUE)
    px = TX_TRUE + SCALE_TRUE * (math.cos(theta) * model_x_m - math.sin(theta) * model_y_m)
    py = TY_TRUE + SCALE_TRUE * (math.sin(theta) * model_x_m + math.cos(theta) * model_y_m)
    return px, py


@pytest.fixture
def registry():
    return ProjectionRegistry(DEFAULT_COORDINATE_SYSTEMS)


@pytest.fixture
def converter(registry):
    return CoordinateConverter(registry, DEFAULT_COORDINATE_SYSTEMS)


@pytest.fixture
def calibration_points(registry):
    """Noise-free calibration points generated from the true transform."""
    points = []
    for name, mx, my in zip(POINT_NAMES, MODEL_X_MM, MODEL_Y_MM):
        px, py = true_projected(mx / 1000.0, my / 1000.0)
        gps = registry.projection_to_gps(px, py, EPSG_L_EST97)
        points.append(
            CalibrationPoint(
                name=name,
                model_x=float(mx),
                model_y=float(my),
                gps_latitude=gps.lat,
                gps_longitude=gps.lng,
            )
        )
    return points
