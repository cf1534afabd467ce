import math

import numpy as np
import pytest

from geocal.angles import dms_to_decimal, parse_angle
from geocal.domain.schemas import GPSPoint, ModelUnits
from geocal.geodesy import format_gps_coordinate, gps_distance_meters, google_maps_url
from geocal.units import from_meters, get_model_units_to_meters, to_meters

TALLINN = GPSPoint(lat=59.43696, lng=24.74534)
TARTU = GPSPoint(lat=58.38062, lng=26.72509)


class TestGpsDistance:

    def test_one_degree_of_latitude(self):
        d = gps_distance_meters(GPSPoint(lat=0, lng=0), GPSPoint(lat=1, lng=0))
        np.testing.assert_allclose(d, 111195.0, rtol=0.01)
        np.testing.assert_allclose(d, 6371000.0 * math.pi / 180.0, rtol=1e-12)

    def test_symmetry(self):
        assert gps_distance_meters(TALLINN, TARTU) == gps_distance_meters(TARTU, TALLINN)

    def test_zero_for_same_point(self):
        assert gps_distance_meters(TALLINN, TALLINN) == 0.0

    def test_positive_for_distinct_points(self):
        assert gps_distance_meters(TALLINN, GPSPoint(lat=TALLINN.lat, lng=TALLINN.lng + 1e-7)) > 0.0

    def test_tallinn_tartu(self):
        np.testing.assert_allclose(gps_distance_meters(TALLINN, TARTU), 163700.0, rtol=0.01)

    def test_antipodes(self):
        d = gps_distance_meters(GPSPoint(lat=0, lng=0), GPSPoint(lat=0, lng=180))
        np.testing.assert_allclose(d, math.pi * 6371000.0, rtol=1e-12)


class TestGpsFormatting:

    def test_format_default_precision(self):
        assert format_gps_coordinate(TALLINN) == "59.436960, 24.745340"

    def test_format_custom_precision(self):
        assert format_gps_coordinate(TALLINN, precision=2) == "59.44, 24.75"

    def test_google_maps_url(self):
        assert google_maps_url(TALLINN) == "https://www.google.com/maps?q=59.43696,24.74534"


class TestUnits:

    def test_factors(self):
        assert get_model_units_to_meters("millimeters") == 0.001
        assert get_model_units_to_meters("feet") == pytest.approx(0.3048)
        assert get_model_units_to_meters("meters") == 1

    def test_enum_values(self):
        assert get_model_units_to_meters(ModelUnits.MILLIMETERS) == 0.001

    def test_unknown_units_fall_back_to_meters(self):
        assert get_model_units_to_meters("furlongs") == 1.0

    @pytest.mark.parametrize("units", list(ModelUnits))
    def test_to_and_from_meters(self, units):
        assert from_meters(to_meters(1234.5, units), units) == pytest.approx(1234.5)


class TestAngles:

    def test_north_east(self):
        np.testing.assert_allclose(dms_to_decimal("N59°26'13.05600\""), 59.43696, atol=1e-9)

    def test_south_west_are_negative(self):
        np.testing.assert_allclose(dms_to_decimal("S24°17'00.52919\""), -24.283480330555556)
        assert dms_to_decimal("W69°05'18.44412\"") < 0

    @pytest.mark.parametrize("bad", ["59.4", "N59°26'", "X10°00'00\"", "N10°75'00\""])
    def test_bad_format(self, bad):
        with pytest.raises(ValueError):
            dms_to_decimal(bad)

    @pytest.mark.parametrize("value, expected", [
        (24.5, 24.5),
        ("24.5", 24.5),
        (" -3 ", -3.0),
        ("E24°30'00\"", 24.5),
    ])
    def test_parse_angle(self, value, expected):
        assert parse_angle(value) == pytest.approx(expected)

    def test_parse_angle_rejects_nan(self):
        with pytest.raises(ValueError):
            parse_angle("nan")
