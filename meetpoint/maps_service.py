import asyncio
import concurrent.futures
import logging
from typing import Dict, List, Optional
from urllib.parse import urlencode

import googlemaps
from googlemaps.exceptions import ApiError, HTTPError, Timeout, TransportError

from .errors import GeocodingError
from .models import Location

logger = logging.getLogger(__name__)


# --- Module-level constants ---
PLACES_PAGE_SIZE = 20
PLACE_PHOTO_URL = 'https://maps.googleapis.com/maps/api/place/photo'
DIRECTIONS_LINK_URL = 'https://www.google.com/maps/dir/'
PLACE_DETAIL_FIELDS = [
    'place_id', 'name', 'formatted_address', 'geometry', 'rating', 'user_ratings_total',
    'photo', 'opening_hours', 'type', 'price_level', 'vicinity', 'icon',
]
LOCATION_DETAIL_FIELDS = ['formatted_address', 'geometry']
PROVIDER_ERRORS = (ApiError, HTTPError, Timeout, TransportError)


def _latlng(point) -> str:
    return f"{point.latitude},{point.longitude}"


class GoogleMapsService:
    """
    Places, geocoding and directions backed by the Google Maps APIs.

    Implements the places-provider contract used by VenueSearchCoordinator
    (``search_nearby``, ``autocomplete``) and the geocoding collaborator
    (``forward``, ``reverse``).
    """

    def __init__(self, api_key: str, max_workers: int = 10, page_size: int = PLACES_PAGE_SIZE,
                 timeout_seconds: Optional[float] = None):
        if not api_key or api_key == "your_api_key_here":
            raise ValueError("Valid Google Maps API key is required")
        self.api_key = api_key
        self.page_size = page_size
        self.client = googlemaps.Client(key=api_key, timeout=timeout_seconds)
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)

    def cleanup(self):
        """Clean up resources"""
        if hasattr(self, 'executor'):
            self.executor.shutdown(wait=True)

    # --- Geocoding ---
    def geocode_address(self, address: str) -> Optional[Location]:
        """
        Geocode an address using Google Maps Geocoding API
        Returns None when the address has no match
        """
        try:
            result = self.client.geocode(address)
        except PROVIDER_ERRORS as e:
            logger.error(f"Geocoding error for '{address}': {e}")
            raise GeocodingError(f"Could not geocode '{address}': {e}") from e
        if not result:
            return None
        location = result[0]
        coords = location['geometry']['location']
        return Location(
            latitude=coords['lat'],
            longitude=coords['lng'],
            id=location.get('place_id'),
            address=location.get('formatted_address'),
        )

    def reverse_geocode(self, coordinate, is_current_location: bool = False) -> Location:
        """Address for a coordinate; falls back to a generic label when none is found"""
        try:
            result = self.client.reverse_geocode((coordinate.latitude, coordinate.longitude))
        except PROVIDER_ERRORS as e:
            logger.error(f"Reverse geocoding error for {_latlng(coordinate)}: {e}")
            raise GeocodingError(f"Could not reverse geocode {_latlng(coordinate)}: {e}") from e
        address = result[0].get('formatted_address') if result else None
        return Location(
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            address=address or ('Current Location' if is_current_location else None),
            is_current_location=is_current_location,
        )

    forward = geocode_address
    reverse = reverse_geocode

    def location_for_place(self, place_id: str) -> Optional[Location]:
        """Resolve an autocomplete selection to a Location"""
        try:
            response = self.client.place(place_id, fields=LOCATION_DETAIL_FIELDS)
        except PROVIDER_ERRORS as e:
            logger.error(f"Place lookup error for {place_id}: {e}")
            raise GeocodingError(f"Could not resolve place {place_id}: {e}") from e
        result = (response or {}).get('result')
        if not result or 'geometry' not in result:
            return None
        coords = result['geometry']['location']
        return Location(
            latitude=coords['lat'],
            longitude=coords['lng'],
            id=place_id,
            address=result.get('formatted_address'),
        )

    # --- Places ---
    def search_nearby(self, coordinate, radius: int, category: Optional[str] = None) -> List[Dict]:
        """
        Raw nearby-search records around a coordinate.

        Provider errors propagate to the caller.
        """
        kwargs = {
            'location': (coordinate.latitude, coordinate.longitude),
            'radius': radius,
        }
        if category:
            kwargs['type'] = category
        places_result = self.client.places_nearby(**kwargs)
        results = places_result.get('results', [])[:self.page_size]
        logger.debug(f"places_nearby type={category} radius={radius}m -> {len(results)} results")
        return results

    def autocomplete(self, query: str) -> List[Dict]:
        try:
            return self.client.places_autocomplete(input_text=query)
        except PROVIDER_ERRORS as e:
            logger.error(f"Autocomplete error for '{query}': {e}")
            raise GeocodingError(f"Could not fetch suggestions for '{query}': {e}") from e

    def place_details(self, place_id: str) -> Optional[Dict]:
        try:
            response = self.client.place(place_id, fields=PLACE_DETAIL_FIELDS)
        except PROVIDER_ERRORS as e:
            logger.error(f"Place details error for {place_id}: {e}")
            raise GeocodingError(f"Could not load place {place_id}: {e}") from e
        result = (response or {}).get('result')
        if result is not None and 'place_id' not in result:
            result = {**result, 'place_id': place_id}
        return result

    def photo_url(self, photo_reference: str, max_width: int = 400) -> str:
        query = urlencode({'maxwidth': max_width, 'photo_reference': photo_reference, 'key': self.api_key})
        return f"{PLACE_PHOTO_URL}?{query}"

    # --- Directions ---
    def get_travel_time(self, origin, destination, mode: str = 'driving', departure_time=None) -> Optional[int]:
        """
        Travel time between two points using Google Maps Directions API
        Returns time in seconds, or None when no route is available
        """
        try:
            directions_result = self.client.directions(
                origin=_latlng(origin),
                destination=_latlng(destination),
                mode=mode,
                departure_time=departure_time,
                alternatives=False
            )
        except PROVIDER_ERRORS as e:
            logger.warning(f"Travel time error ({mode}): {e}")
            return None

        if directions_result:
            route = directions_result[0]
            return route['legs'][0]['duration']['value']
        return None

    @staticmethod
    def directions_url(origin, destination, mode: str = 'driving') -> str:
        query = urlencode({
            'api': 1,
            'origin': _latlng(origin),
            'destination': _latlng(destination),
            'travelmode': mode,
        })
        return f"{DIRECTIONS_LINK_URL}?{query}"

    # Async wrapper methods for parallel execution
    async def geocode_address_async(self, address: str) -> Optional[Location]:
        """Async wrapper for geocode_address"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.geocode_address, address)
