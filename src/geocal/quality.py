from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from geocal.domain.schemas import CalibrationQuality


@dataclass(frozen=True)
class QualityThresholds:
    """
    Upper RMSE bounds (metres) of each calibration quality bucket.

    Anything above `acceptable_rmse_m` is poor.
    """
    excellent_rmse_m: float = 0.05
    good_rmse_m: float = 0.2
    acceptable_rmse_m: float = 0.5

    def __post_init__(self) -> None:
        if not (0 <= self.excellent_rmse_m <= self.good_rmse_m <= self.acceptable_rmse_m):
            raise ValueError(
                "Quality thresholds must satisfy 0 <= excellent <= good <= acceptable"
            )

    def classify(self, rmse: float) -> CalibrationQuality:
        if rmse <= self.excellent_rmse_m:
            return CalibrationQuality.EXCELLENT
        if rmse <= self.good_rmse_m:
            return CalibrationQuality.GOOD
        if rmse <= self.acceptable_rmse_m:
            return CalibrationQuality.ACCEPTABLE
        return CalibrationQuality.POOR


DEFAULT_THRESHOLDS = QualityThresholds()


def get_calibration_quality(rmse: float) -> CalibrationQuality:
    return DEFAULT_THRESHOLDS.classify(rmse)


def make_quality_policy(
    thresholds: Optional[QualityThresholds] = None,
) -> Callable[[float], CalibrationQuality]:
    """Builds a quality policy bound to the given thresholds."""
    return (thresholds or DEFAULT_THRESHOLDS).classify
