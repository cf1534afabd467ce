import math

from geocal.domain.schemas import GPSPoint

EARTH_RADIUS_M = 6371000.0


def gps_distance_meters(p1: GPSPoint, p2: GPSPoint) -> float:
    """Great-circle distance in metres (Haversine, spherical Earth)."""
    lat1 = math.radians(p1.lat)
    lat2 = math.radians(p2.lat)
    delta_lat = math.radians(p2.lat - p1.lat)
    delta_lng = math.radians(p2.lng - p1.lng)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lng / 2) ** 2
    )
    a = min(a, 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def format_gps_coordinate(point: GPSPoint, precision: int = 6) -> str:
    return f"{point.lat:.{precision}f}, {point.lng:.{precision}f}"


def google_maps_url(point: GPSPoint) -> str:
    return f"https://www.google.com/maps?q={point.lat},{point.lng}"
