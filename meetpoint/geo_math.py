"""
Spherical geometry primitives.

Everything here is pure: degree/radian conversion, great-circle distance
(Haversine) and the Cartesian midpoint used by the midpoint engine.
Arguments only need ``latitude`` and ``longitude`` attributes, so both
``Coordinate`` and ``Location`` can be passed in.
"""

import math
from dataclasses import dataclass

from geopy.distance import geodesic

from .errors import InvalidCoordinateError


# --- Module-level constants ---
EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371


def degrees_to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180.0)


def radians_to_degrees(radians: float) -> float:
    return radians * (180.0 / math.pi)


def validate_coordinate(latitude, longitude) -> None:
    """Raise InvalidCoordinateError unless both values are finite and in range"""
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        raise InvalidCoordinateError(latitude, longitude, 'not a number') from None
    if math.isnan(lat) or math.isnan(lng) or math.isinf(lat) or math.isinf(lng):
        raise InvalidCoordinateError(latitude, longitude, 'not a finite number')
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinateError(latitude, longitude, 'latitude must be between -90 and 90')
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinateError(latitude, longitude, 'longitude must be between -180 and 180')


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees, validated on construction"""

    latitude: float
    longitude: float

    def __post_init__(self):
        validate_coordinate(self.latitude, self.longitude)
        object.__setattr__(self, 'latitude', float(self.latitude))
        object.__setattr__(self, 'longitude', float(self.longitude))

    def to_dict(self) -> dict:
        return {'lat': self.latitude, 'lng': self.longitude}


def _to_cartesian(point):
    lat = degrees_to_radians(point.latitude)
    lng = degrees_to_radians(point.longitude)
    return (
        math.cos(lat) * math.cos(lng),
        math.cos(lat) * math.sin(lng),
        math.sin(lat),
    )


def haversine_distance_km(a, b) -> float:
    """
    Great-circle distance between two points in kilometers.

    Symmetric, and 0.0 for identical points.
    """
    lat1 = degrees_to_radians(a.latitude)
    lon1 = degrees_to_radians(a.longitude)
    lat2 = degrees_to_radians(b.latitude)
    lon2 = degrees_to_radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def cartesian_midpoint(a, b, weight_a: float = 0.5, weight_b: float = 0.5):
    """
    Weighted average of two points on the unit sphere.

    Both points are converted to Cartesian vectors, combined as
    ``weight_a * vec_a + weight_b * vec_b`` and converted back with atan2.
    The combined vector is not renormalised; atan2 only needs its direction.
    Weights are expected to be non-negative and already normalised by the
    caller.
    """
    x1, y1, z1 = _to_cartesian(a)
    x2, y2, z2 = _to_cartesian(b)

    x = x1 * weight_a + x2 * weight_b
    y = y1 * weight_a + y2 * weight_b
    z = z1 * weight_a + z2 * weight_b

    lng = math.atan2(y, x)
    hyp = math.sqrt(x * x + y * y)
    lat = math.atan2(z, hyp)

    # Degree conversion of +/-pi can overshoot the range by one ulp
    mid_lat = min(90.0, max(-90.0, radians_to_degrees(lat)))
    mid_lng = min(180.0, max(-180.0, radians_to_degrees(lng)))
    return Coordinate(mid_lat, mid_lng)


def geodesic_distance_km(a, b) -> float:
    """Distance on the WGS-84 ellipsoid, for comparison with the spherical figure"""
    return geodesic((a.latitude, a.longitude), (b.latitude, b.longitude)).kilometers
