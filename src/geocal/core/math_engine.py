import logging
import math
from typing import Any, Callable, Optional, Sequence, Tuple, Union

import numpy as np

from geocal.domain.schemas import (
    CalibrationQuality,
    CalibrationQualityResult,
    HelmertTransformParams,
    Point2D,
)
from geocal.errors import InsufficientPointsError

logger = logging.getLogger(__name__)

PointLike = Union[Point2D, Sequence[float]]
QualityPolicy = Callable[[float], CalibrationQuality]


def _as_array(points: Sequence[PointLike]) -> np.ndarray:
    """Stacks points into an (n, 2) float array."""
    rows = [(p.x, p.y) if isinstance(p, Point2D) else (p[0], p[1]) for p in points]
    return np.array(rows, dtype=float).reshape(-1, 2)


def _unpack(params: Any) -> Tuple[float, float, float, float]:
    """Returns (tx, ty, rotation_rad, scale) from params or a plain mapping."""
    if isinstance(params, dict):
        translation = params["translation"]
        rotation_rad = params["rotation_rad"]
        scale = params["scale"]
    else:
        translation = params.translation
        rotation_rad = params.rotation_rad
        scale = params.scale
    if isinstance(translation, dict):
        tx, ty = translation["x"], translation["y"]
    else:
        tx, ty = translation.x, translation.y
    return float(tx), float(ty), float(rotation_rad), float(scale)


def _is_degenerate(points: np.ndarray) -> bool:
    return bool(np.all(points == points[0]))


def _identity_at(centroid: np.ndarray) -> HelmertTransformParams:
    return HelmertTransformParams(
        translation=Point2D(x=float(centroid[0]), y=float(centroid[1])),
        rotation_rad=0.0,
        scale=1.0,
    )


def calculate_helmert_2d(
    model_points: Sequence[PointLike],
    projected_points: Sequence[PointLike],
) -> HelmertTransformParams:
    """
    Least-squares 2D similarity transform mapping model points onto projected points.

    With centred coordinates the normal equations decouple, so the optimum is
    closed form:
        a = s*cos(theta) = (Sxx + Syy) / S
        b = s*sin(theta) = (Sxy - Syx) / S
    where S is the sum of squared centred model coordinates. The translation
    maps the model centroid onto the projected centroid.

    If all model points coincide (S == 0) the rotation and scale are
    undetermined; the identity is returned, anchored at the projected centroid.
    The same fallback applies when all projected points coincide (a == b == 0).
    """
    model = _as_array(model_points)
    projected = _as_array(projected_points)
    n = len(model)

    if n < 2:
        raise InsufficientPointsError(n)
    if len(projected) != n:
        raise ValueError(
            f"model_points and projected_points must have same length ({n} != {len(projected)})"
        )

    model_c = model.mean(axis=0)
    proj_c = projected.mean(axis=0)

    mx, my = (model - model_c).T
    px, py = (projected - proj_c).T

    sum_xx = float(np.sum(mx * px))
    sum_xy = float(np.sum(mx * py))
    sum_yx = float(np.sum(my * px))
    sum_yy = float(np.sum(my * py))
    sum_x2y2 = float(np.sum(mx * mx + my * my))

    if sum_x2y2 == 0.0 or _is_degenerate(model):
        logger.warning("Degenerate calibration: all %d model points coincide", n)
        return _identity_at(proj_c)

    a = (sum_xx + sum_yy) / sum_x2y2
    b = (sum_xy - sum_yx) / sum_x2y2

    scale = math.hypot(a, b)
    if scale == 0.0 or not math.isfinite(scale):
        logger.warning("Degenerate calibration: all %d projected points coincide", n)
        return _identity_at(proj_c)
    rotation_rad = math.atan2(b, a)

    cos = math.cos(rotation_rad)
    sin = math.sin(rotation_rad)
    tx = proj_c[0] - scale * (cos * model_c[0] - sin * model_c[1])
    ty = proj_c[1] - scale * (sin * model_c[0] + cos * model_c[1])

    logger.debug(
        "Helmert fit on %d points: scale=%.9f rotation=%.6f deg",
        n, scale, math.degrees(rotation_rad),
    )
    return HelmertTransformParams(
        translation=Point2D(x=float(tx), y=float(ty)),
        rotation_rad=rotation_rad,
        scale=scale,
    )


def apply_helmert(point: PointLike, params: Any) -> Point2D:
    """Model -> projected:  t + s * R(theta) * p."""
    tx, ty, rotation_rad, scale = _unpack(params)
    x, y = (point.x, point.y) if isinstance(point, Point2D) else (point[0], point[1])
    cos = math.cos(rotation_rad)
    sin = math.sin(rotation_rad)
    return Point2D(
        x=tx + scale * (cos * x - sin * y),
        y=ty + scale * (sin * x + cos * y),
    )


def inverse_helmert(point: PointLike, params: Any) -> Point2D:
    """Projected -> model:  R(-theta) * (p - t) / s."""
    tx, ty, rotation_rad, scale = _unpack(params)
    x, y = (point.x, point.y) if isinstance(point, Point2D) else (point[0], point[1])
    cos = math.cos(-rotation_rad)
    sin = math.sin(-rotation_rad)
    dx = x - tx
    dy = y - ty
    return Point2D(
        x=(cos * dx - sin * dy) / scale,
        y=(sin * dx + cos * dy) / scale,
    )


def calculate_calibration_quality(
    model_points: Sequence[PointLike],
    projected_points: Sequence[PointLike],
    params: Any,
    quality_policy: Optional[QualityPolicy] = None,
) -> CalibrationQualityResult:
    """Residual of every pair under the fitted transform, in input order."""
    if quality_policy is None:
        from geocal.quality import get_calibration_quality
        quality_policy = get_calibration_quality

    model = _as_array(model_points)
    projected = _as_array(projected_points)
    if len(model) != len(projected):
        raise ValueError("model_points and projected_points must have same length")
    if len(model) == 0:
        raise InsufficientPointsError(0)

    tx, ty, rotation_rad, scale = _unpack(params)
    cos = math.cos(rotation_rad)
    sin = math.sin(rotation_rad)

    pred_x = tx + scale * (cos * model[:, 0] - sin * model[:, 1])
    pred_y = ty + scale * (sin * model[:, 0] + cos * model[:, 1])
    errors = np.hypot(pred_x - projected[:, 0], pred_y - projected[:, 1])

    rmse = float(np.sqrt(np.mean(errors ** 2)))
    max_error = float(np.max(errors))

    return CalibrationQualityResult(
        rmse=rmse,
        max_error=max_error,
        errors=[float(e) for e in errors],
        quality=quality_policy(rmse),
        degenerate=_is_degenerate(model) or _is_degenerate(projected),
    )


def check_extrapolation(
    points: Sequence[PointLike],
    control_points: Sequence[PointLike],
    epsilon: float = 1e-5,
) -> Tuple[Optional[float], int]:
    """
    Distance by which points fall outside the convex hull of the control points.

    Returns (max distance, count outside), or (None, 0) when every point is
    inside or the hull is undefined (fewer than 3 points, or collinear).
    """
    control = _as_array(control_points)
    if len(control) < 3:
        return None, 0

    from scipy.spatial import ConvexHull, QhullError

    try:
        hull = ConvexHull(control)
    except QhullError:
        return None, 0

    pts = _as_array(points)
    equations = hull.equations
    dists = np.dot(pts, equations[:, :2].T) + equations[:, 2]
    max_dists = np.max(dists, axis=1)
    outside_mask = max_dists > epsilon

    if np.any(outside_mask):
        return float(np.max(max_dists[outside_mask])), int(np.sum(outside_mask))
    return None, 0
