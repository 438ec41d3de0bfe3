"""
Haversine Algorithm - Calculate distance between two geographical points
Used to find donors nearest to a blood request and to geo-target live alerts
"""

import math

# Radius of earth in kilometers
EARTH_RADIUS_KM = 6371

# 7 decimal places is roughly 1 cm at the equator
COORDINATE_PRECISION = 7

LATITUDE_RANGE = (-90, 90)
LONGITUDE_RANGE = (-180, 180)


class CoordinateError(ValueError):
    """Base class for rejected latitude/longitude input"""

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field
        self.message = message


class MissingField(CoordinateError):
    pass


class InvalidFormat(CoordinateError):
    pass


class OutOfRange(CoordinateError):
    pass


def _is_absent(value):
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ''


def parse_coordinate(value, field, bounds, required=False):
    """
    Validate and normalize a single coordinate.

    Args:
        value: Raw input (string, number, Decimal or None)
        field: Field name used in error messages ('latitude' / 'longitude')
        bounds: (min, max) tuple for the axis
        required: Whether a missing value is an error

    Returns:
        The value rounded to 7 decimals, or None when absent and optional

    Raises:
        MissingField, InvalidFormat, OutOfRange
    """
    if _is_absent(value):
        if required:
            raise MissingField(field, f"{field} is required")
        return None

    if isinstance(value, bool):
        raise InvalidFormat(field, f"{field} must be a valid number")

    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise InvalidFormat(field, f"{field} must be a valid number")

    if not math.isfinite(parsed):
        raise InvalidFormat(field, f"{field} must be a valid number")

    low, high = bounds
    if parsed < low or parsed > high:
        raise OutOfRange(field, f"{field} must be between {low} and {high}")

    return round(parsed, COORDINATE_PRECISION)


def parse_latitude(value, required=False):
    return parse_coordinate(value, 'latitude', LATITUDE_RANGE, required)


def parse_longitude(value, required=False):
    return parse_coordinate(value, 'longitude', LONGITUDE_RANGE, required)


def has_location(latitude, longitude):
    """A point counts only when both coordinates are present"""
    return latitude is not None and longitude is not None


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate straight-line distance between two points.
    Note: This is "as the crow flies" distance, not road distance.

    Args:
        lat1, lon1: Latitude and longitude of point 1 (request / alert origin)
        lat2, lon2: Latitude and longitude of point 2 (donor / subscriber)

    Returns:
        Distance in kilometers
    """
    # Convert decimal degrees to radians
    lat1, lon1, lat2, lon2 = map(math.radians, map(float, [lat1, lon1, lat2, lon2]))

    # Haversine formula
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push a past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def find_nearby(origin_lat, origin_lon, items, max_distance):
    """
    Find all items within a specified distance from the origin

    Args:
        origin_lat: Origin latitude
        origin_lon: Origin longitude
        items: QuerySet or list of objects with latitude/longitude
        max_distance: Maximum distance in km

    Returns:
        List of tuples: (item, distance) sorted by distance (closest first).
        Items at the same distance keep their input order.
    """
    nearby = []

    for item in items:
        if not has_location(item.latitude, item.longitude):
            continue

        distance = haversine_distance(
            origin_lat,
            origin_lon,
            item.latitude,
            item.longitude
        )

        if distance <= max_distance:
            nearby.append((item, distance))

    nearby.sort(key=lambda x: x[1])

    return nearby
