"""
Strict parsing of raw places-provider records.

This is the only module that knows the provider's response shape. Records
come in as untyped dicts (Google Places "nearby search" results) and leave
as immutable ``Venue`` objects. A record without a place id or usable
geometry is rejected; every other missing field gets a default.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional

from .errors import InvalidCoordinateError
from .geo_math import Coordinate, haversine_distance_km
from .models import Venue
from .presenter import price_tier_label

logger = logging.getLogger(__name__)


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_rating(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(rating) or not 0.0 <= rating <= 5.0:
        return None
    return rating


def _optional_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _extract_coordinate(record: Dict) -> Optional[Coordinate]:
    location = (record.get('geometry') or {}).get('location') or {}
    lat = location.get('lat', record.get('lat'))
    lng = location.get('lng', record.get('lng'))
    if lat is None or lng is None:
        return None
    try:
        return Coordinate(lat, lng)
    except InvalidCoordinateError as e:
        logger.warning(f"Ignoring place with invalid geometry: {e}")
        return None


def _extract_photo_reference(record: Dict) -> Optional[str]:
    photos = record.get('photos') or []
    if not photos:
        return None
    first = photos[0]
    if isinstance(first, dict):
        return _optional_str(first.get('photo_reference'))
    return _optional_str(first)


def parse_venue(record: Dict, midpoint=None) -> Optional[Venue]:
    """
    Turn one raw provider record into a Venue measured against ``midpoint``.

    Without a midpoint the distance is left at 0.0. Returns None for
    records that cannot identify or place the venue.
    """
    if not isinstance(record, dict):
        logger.warning(f"Ignoring non-dict place record: {record!r}")
        return None

    place_id = _optional_str(record.get('place_id'))
    if not place_id:
        logger.warning(f"Ignoring place without place_id: {record.get('name')!r}")
        return None

    coordinate = _extract_coordinate(record)
    if coordinate is None:
        logger.warning(f"Ignoring place without geometry: {place_id}")
        return None

    opening_hours = record.get('opening_hours')
    is_open = bool(opening_hours.get('open_now', False)) if isinstance(opening_hours, dict) else False

    types = record.get('types') or []
    price_level = _optional_int(record.get('price_level'))

    return Venue(
        place_id=place_id,
        name=_optional_str(record.get('name')) or 'Unnamed place',
        coordinate=coordinate,
        address=_optional_str(record.get('formatted_address')),
        vicinity=_optional_str(record.get('vicinity')),
        rating=_optional_rating(record.get('rating')),
        user_ratings_total=_optional_int(record.get('user_ratings_total')),
        photo_reference=_extract_photo_reference(record),
        is_open=is_open,
        types=frozenset(str(t) for t in types if t),
        price_level=price_level,
        price_tier=price_tier_label(price_level) if price_level is not None else None,
        icon=_optional_str(record.get('icon')),
        distance_from_midpoint=haversine_distance_km(midpoint, coordinate) if midpoint is not None else 0.0,
    )


def parse_venues(records: Iterable[Dict], midpoint) -> List[Venue]:
    venues = []
    for record in records or []:
        venue = parse_venue(record, midpoint)
        if venue is not None:
            venues.append(venue)
    return venues


def parse_suggestion(prediction: Dict) -> Optional[Dict]:
    """Autocomplete prediction -> {'description', 'place_id'}"""
    if not isinstance(prediction, dict):
        return None
    description = _optional_str(prediction.get('description'))
    place_id = _optional_str(prediction.get('place_id'))
    if not description or not place_id:
        return None
    return {'description': description, 'place_id': place_id}
