"""
Display helpers: fairness labels, travel time estimates, price tiers and
category names.
"""

import math
from typing import Dict, Optional

from .geo_math import KM_TO_MILES
from .models import PRICE_TIERS, FairnessMetric, Venue


# --- Module-level constants ---
PERFECTLY_FAIR_MAX_MILES = 1.0
MODERATELY_FAIR_MAX_MILES = 3.0
MINUTES_PER_KM = 2.5

CATEGORY_CHIP_LABELS = {
    'restaurant': 'Restaurants',
    'cafe': 'Cafes',
    'bar': 'Bars',
    'park': 'Parks',
    'shopping_mall': 'Shopping',
    'movie_theater': 'Movies',
    'museum': 'Museums',
    'library': 'Libraries',
    'art_gallery': 'Art Galleries',
    'tourist_attraction': 'Attractions',
}


def classify_fairness(delta_miles: float) -> str:
    if delta_miles < PERFECTLY_FAIR_MAX_MILES:
        return 'Perfectly Fair'
    if delta_miles < MODERATELY_FAIR_MAX_MILES:
        return 'Moderately Fair'
    return 'Unbalanced'


def fairness_color(delta_miles: float) -> str:
    if delta_miles < PERFECTLY_FAIR_MAX_MILES:
        return 'green'
    if delta_miles < MODERATELY_FAIR_MAX_MILES:
        return 'orange'
    return 'red'


def estimate_travel_minutes(distance_km: float) -> int:
    """
    Rough trip duration: 2.5 minutes per km, rounded half away from zero.

    This is a linear approximation, not a routing result. Use it only when
    live directions are unavailable.
    """
    minutes = distance_km * MINUTES_PER_KM
    return int(math.copysign(math.floor(abs(minutes) + 0.5), minutes))


def price_tier_label(level) -> str:
    """Map a 0..4 price level to its symbol; anything else falls back to '$'"""
    if isinstance(level, bool) or not isinstance(level, int):
        return '$'
    if 0 <= level < len(PRICE_TIERS):
        return PRICE_TIERS[level]
    return '$'


def category_display_name(tag: str) -> str:
    """'tourist_attraction' -> 'Tourist Attraction'"""
    return ' '.join(word[:1].upper() + word[1:] for word in tag.split('_') if word)


def category_chip_label(tag: str) -> str:
    return CATEGORY_CHIP_LABELS.get(tag) or category_display_name(tag)


def trip_summary(metric: FairnessMetric, distance_a_km: Optional[float] = None,
                 distance_b_km: Optional[float] = None) -> Dict:
    """Summary card payload for a computed midpoint"""
    if distance_a_km is None:
        distance_a_km = metric.distance_from_a / KM_TO_MILES
    if distance_b_km is None:
        distance_b_km = metric.distance_from_b / KM_TO_MILES
    return {
        'from_a_miles': round(metric.distance_from_a, 1),
        'from_b_miles': round(metric.distance_from_b, 1),
        'fairness_delta_miles': round(metric.delta, 2),
        'fairness': metric.label,
        'fairness_color': fairness_color(metric.delta) if metric.is_known else None,
        'estimated_minutes_from_a': estimate_travel_minutes(distance_a_km),
        'estimated_minutes_from_b': estimate_travel_minutes(distance_b_km),
    }


def annotate_venue(venue: Venue) -> Dict:
    """Venue dict plus the display fields shown in result lists"""
    return {
        **venue.to_dict(),
        'distance_from_midpoint_miles': round(venue.distance_from_midpoint * KM_TO_MILES, 2),
        'estimated_minutes_from_midpoint': estimate_travel_minutes(venue.distance_from_midpoint),
        'category_names': [category_display_name(t) for t in sorted(venue.types)],
    }
