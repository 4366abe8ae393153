import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import VenueSearchError
from .geo_math import haversine_distance_km
from .models import Location, SearchState, Venue
from .places_adapter import parse_suggestion, parse_venues

logger = logging.getLogger(__name__)


# --- Module-level constants ---
MIN_RADIUS_M = 3000
MAX_RADIUS_M = 50000            # provider ceiling for nearby search
ESCALATION_RADII_M = (50000, 100000)
DEFAULT_TIMEOUT_SECONDS = 15.0


def clamp_radius(radius_m: float) -> int:
    return int(round(min(MAX_RADIUS_M, max(MIN_RADIUS_M, radius_m))))


@dataclass(frozen=True)
class SearchOutcome:
    """Result of one search invocation"""

    venues: Tuple[Venue, ...]
    state: SearchState
    radius: int
    attempted_radii: Tuple[int, ...] = field(default_factory=tuple)
    message: str = ''

    @property
    def is_empty(self) -> bool:
        return self.state == SearchState.EMPTY


class VenueSearchCoordinator:
    """
    Searches the places provider around a midpoint.

    One nearby search per category runs concurrently; when nothing comes
    back the radius escalates. Results are deduplicated by place id and
    measured against the midpoint.

    ``places_provider`` needs ``search_nearby(coordinate, radius_m, category)``
    returning raw records, and ``autocomplete(query)`` for suggestions.
    Blocking provider calls run on ``executor`` (the loop default if None).

    ``state``, ``message`` and ``last_outcome`` describe the most recent
    search and are only meaningful for a single caller. Concurrent callers
    sharing one coordinator (the HTTP app) must read the returned
    ``SearchOutcome`` instead.
    """

    def __init__(self, places_provider, executor=None, timeout_seconds: Optional[float] = DEFAULT_TIMEOUT_SECONDS):
        self.places_provider = places_provider
        self.executor = executor
        self.timeout_seconds = timeout_seconds
        self.state = SearchState.IDLE
        self.message = ''
        self.last_outcome: Optional[SearchOutcome] = None

    @staticmethod
    def initial_radius(location_a, location_b) -> int:
        """Half the A-B distance in meters, clamped to [3 km, 50 km]"""
        distance_km = haversine_distance_km(location_a, location_b)
        return clamp_radius(distance_km / 2 * 1000)

    @staticmethod
    def _ordered_categories(categories: Optional[Iterable[str]]) -> List[Optional[str]]:
        if not categories:
            return [None]
        if isinstance(categories, str):
            categories = [categories]
        elif isinstance(categories, (set, frozenset)):
            categories = sorted(categories)
        ordered = list(dict.fromkeys(c for c in categories if c))
        return ordered or [None]

    async def _search_category(self, midpoint: Location, radius: int, category: Optional[str]) -> List[Venue]:
        loop = asyncio.get_running_loop()
        call = loop.run_in_executor(
            self.executor, self.places_provider.search_nearby, midpoint.coordinate, radius, category
        )
        try:
            if self.timeout_seconds:
                records = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                records = await call
        except VenueSearchError:
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"Places search timed out: category={category} radius={radius}m")
            raise VenueSearchError(category, e, radius) from e
        except Exception as e:
            logger.error(f"Places search error: category={category} radius={radius}m error={e}")
            raise VenueSearchError(category, e, radius) from e
        return parse_venues(records, midpoint)

    async def _search_tier(self, midpoint: Location, radius: int, categories: List[Optional[str]]) -> List[Venue]:
        """Run every category at one radius and return the deduplicated union"""
        tasks = [self._search_category(midpoint, radius, category) for category in categories]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        merged: List[Venue] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            merged.extend(result)

        unique = deduplicate(merged)
        logger.info(
            f"Radius {radius}m: {len(merged)} results across {len(categories)} categories, {len(unique)} unique"
        )
        return unique

    async def find_venues_async(self, midpoint: Location, location_a: Location, location_b: Location,
                                categories: Optional[Iterable[str]] = None) -> SearchOutcome:
        self.state = SearchState.SEARCHING
        self.message = ''
        ordered = self._ordered_categories(categories)
        radius = self.initial_radius(location_a, location_b)
        attempted = [radius]
        logger.info(f"Searching venues around ({midpoint.latitude:.5f}, {midpoint.longitude:.5f}) "
                    f"radius={radius}m categories={ordered}")

        try:
            venues = await self._search_tier(midpoint, radius, ordered)
            if not venues:
                for tier in ESCALATION_RADII_M:
                    next_radius = clamp_radius(tier)
                    if next_radius in attempted:
                        logger.info(f"Skipping escalation to {tier}m: clamps to already searched {next_radius}m")
                        continue
                    logger.info(f"No venues found, escalating radius to {next_radius}m")
                    attempted.append(next_radius)
                    venues = await self._search_tier(midpoint, next_radius, ordered)
                    if venues:
                        break
        except VenueSearchError as e:
            self.state = SearchState.FAILED
            self.message = str(e)
            raise

        final_radius = attempted[-1]
        if venues:
            state = SearchState.SUCCESS
            message = f"Found {len(venues)} venues within {final_radius / 1000:g} km"
        else:
            state = SearchState.EMPTY
            message = f"No venues found within {final_radius / 1000:g} km of the midpoint"
            logger.warning(message)

        outcome = SearchOutcome(
            venues=tuple(venues),
            state=state,
            radius=final_radius,
            attempted_radii=tuple(attempted),
            message=message,
        )
        self.state = state
        self.message = message
        self.last_outcome = outcome
        return outcome

    async def search_async(self, midpoint: Location, location_a: Location, location_b: Location,
                           categories: Optional[Iterable[str]] = None) -> List[Venue]:
        outcome = await self.find_venues_async(midpoint, location_a, location_b, categories)
        return list(outcome.venues)

    def find_venues(self, midpoint: Location, location_a: Location, location_b: Location,
                    categories: Optional[Iterable[str]] = None) -> SearchOutcome:
        """Blocking version of find_venues_async"""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(self.find_venues_async(midpoint, location_a, location_b, categories))
        finally:
            loop.close()

    def search(self, midpoint: Location, location_a: Location, location_b: Location,
               categories: Optional[Iterable[str]] = None) -> List[Venue]:
        return list(self.find_venues(midpoint, location_a, location_b, categories).venues)

    def place_suggestions(self, query: str) -> List[Dict]:
        """Autocomplete suggestions for an address box; blank input yields none"""
        if not query or not query.strip():
            return []
        predictions = self.places_provider.autocomplete(query.strip())
        suggestions = []
        for prediction in predictions or []:
            suggestion = parse_suggestion(prediction)
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions


def deduplicate(venues: Iterable[Venue]) -> List[Venue]:
    """Keep the first venue seen for each place id, preserving order"""
    seen = set()
    unique = []
    for venue in venues:
        if venue.place_id in seen:
            continue
        seen.add(venue.place_id)
        unique.append(venue)
    return unique
