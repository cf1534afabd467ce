import logging
from typing import Union

from geocal.domain.schemas import ModelUnits

logger = logging.getLogger(__name__)

_METERS_PER_UNIT = {
    ModelUnits.MILLIMETERS: 0.001,
    ModelUnits.METERS: 1.0,
    ModelUnits.FEET: 0.3048,
}


def get_model_units_to_meters(model_units: Union[ModelUnits, str]) -> float:
    """Conversion factor from model units to metres. Unknown units count as metres."""
    try:
        unit = ModelUnits(model_units)
    except ValueError:
        logger.warning("Unknown model units %r, assuming meters", model_units)
        return 1.0
    return _METERS_PER_UNIT[unit]


def to_meters(value: float, model_units: Union[ModelUnits, str]) -> float:
    return value * get_model_units_to_meters(model_units)


def from_meters(value: float, model_units: Union[ModelUnits, str]) -> float:
    return value / get_model_units_to_meters(model_units)
