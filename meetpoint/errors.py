"""Error types raised by the midpoint and venue search engine"""

from typing import Optional


class MeetPointError(Exception):
    """Base class for all errors raised by meetpoint"""


class InvalidCoordinateError(MeetPointError, ValueError):
    """Latitude or longitude outside the valid range (or not a finite number)"""

    def __init__(self, latitude, longitude, reason: str = 'out of range'):
        self.latitude = latitude
        self.longitude = longitude
        self.reason = reason
        super().__init__(f"Invalid coordinate ({latitude}, {longitude}): {reason}")


class InvalidWeightError(MeetPointError, ValueError):
    """Midpoint weights are negative or sum to zero"""

    def __init__(self, weight_a, weight_b):
        self.weight_a = weight_a
        self.weight_b = weight_b
        super().__init__(
            f"Invalid weights ({weight_a}, {weight_b}): weights must be non-negative and not both zero"
        )


class VenueSearchError(MeetPointError):
    """A places provider call failed or timed out for one category"""

    def __init__(self, category: Optional[str], cause: BaseException, radius: Optional[int] = None):
        self.category = category
        self.cause = cause
        self.radius = radius
        detail = str(cause) or type(cause).__name__
        label = category or 'any'
        super().__init__(f"Venue search failed for category '{label}': {detail}")


class GeocodingError(MeetPointError):
    """The geocoding provider failed (as opposed to finding no match)"""
