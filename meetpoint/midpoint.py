import logging
import math
from typing import Optional

from .errors import InvalidWeightError
from .geo_math import KM_TO_MILES, cartesian_midpoint, haversine_distance_km, validate_coordinate
from .models import FairnessMetric, Location
from .presenter import classify_fairness

logger = logging.getLogger(__name__)


class MidpointEngine:
    """Geographic and weighted midpoints between two locations, plus fairness"""

    def calculate_geographic_midpoint(self, location_a, location_b) -> Location:
        """
        Equal-weight midpoint on the sphere.

        Raises InvalidCoordinateError if either input is out of range.
        """
        validate_coordinate(location_a.latitude, location_a.longitude)
        validate_coordinate(location_b.latitude, location_b.longitude)

        mid = cartesian_midpoint(location_a, location_b, 0.5, 0.5)
        logger.debug(f"Geographic midpoint: lat={mid.latitude:.6f}, lng={mid.longitude:.6f}")
        return Location.from_coordinate(mid, name='Midpoint')

    # Short alias used by the HTTP layer and the session
    calculate_midpoint = calculate_geographic_midpoint

    def calculate_weighted_midpoint(self, location_a, location_b, weight_a: float, weight_b: float) -> Location:
        """
        Midpoint biased by two weights.

        Weights are normalised, then applied swapped: point A's vector is
        scaled by B's normalised weight and point B's by A's. A larger
        ``weight_a`` therefore pulls the midpoint towards B.

        Raises InvalidWeightError for negative, non-finite or all-zero weights.
        """
        validate_coordinate(location_a.latitude, location_a.longitude)
        validate_coordinate(location_b.latitude, location_b.longitude)
        try:
            wa = float(weight_a)
            wb = float(weight_b)
        except (TypeError, ValueError):
            raise InvalidWeightError(weight_a, weight_b) from None
        if math.isnan(wa) or math.isnan(wb) or math.isinf(wa) or math.isinf(wb):
            raise InvalidWeightError(weight_a, weight_b)
        if wa < 0 or wb < 0 or wa + wb <= 0:
            raise InvalidWeightError(weight_a, weight_b)

        total = wa + wb
        normalized_a = wa / total
        normalized_b = wb / total

        mid = cartesian_midpoint(location_a, location_b, normalized_b, normalized_a)
        logger.debug(
            f"Weighted midpoint (wa={normalized_a:.3f}, wb={normalized_b:.3f}): "
            f"lat={mid.latitude:.6f}, lng={mid.longitude:.6f}"
        )
        return Location.from_coordinate(mid, name='Weighted Midpoint')

    def calculate_distance(self, location_a, location_b) -> float:
        """Great-circle distance in km"""
        return haversine_distance_km(location_a, location_b)

    def fairness(self, location_a: Optional[Location], location_b: Optional[Location],
                 midpoint: Optional[Location]) -> FairnessMetric:
        if location_a is None or location_b is None or midpoint is None:
            return FairnessMetric.unknown()

        from_a = haversine_distance_km(location_a, midpoint) * KM_TO_MILES
        from_b = haversine_distance_km(location_b, midpoint) * KM_TO_MILES
        delta = abs(from_a - from_b)
        return FairnessMetric(
            distance_from_a=from_a,
            distance_from_b=from_b,
            delta=delta,
            label=classify_fairness(delta),
        )
