import asyncio
import logging
from typing import Iterable, List, Optional, Set

from .errors import InvalidCoordinateError, InvalidWeightError, VenueSearchError
from .midpoint import MidpointEngine
from .models import FairnessMetric, Location, SearchState, SortOption, Venue
from .ranking import available_categories, filter_and_sort
from .venue_search import SearchOutcome, VenueSearchCoordinator

logger = logging.getLogger(__name__)


DEFAULT_CATEGORIES = ('cafe', 'restaurant', 'bar')


class SearchSession:
    """
    State for one user's meeting-point search.

    Holds the two locations, the midpoint, the raw venue list and the
    filtered/sorted view. Changing filters or sort order only re-ranks the
    raw list; a new network search happens when the midpoint changes or on
    ``refresh``. When searches overlap, only the most recent one may update
    the session.
    """

    def __init__(self, coordinator: VenueSearchCoordinator, engine: Optional[MidpointEngine] = None,
                 categories: Iterable[str] = DEFAULT_CATEGORIES):
        self.coordinator = coordinator
        self.engine = engine or MidpointEngine()
        self.search_categories = tuple(dict.fromkeys(categories))
        self.selected_categories: Set[str] = set(self.search_categories)
        self.sort_option = SortOption.DISTANCE
        self.location_a: Optional[Location] = None
        self.location_b: Optional[Location] = None
        self.midpoint: Optional[Location] = None
        self.venues: List[Venue] = []
        self.filtered_venues: List[Venue] = []
        self.state = SearchState.IDLE
        self.outcome: Optional[SearchOutcome] = None
        self.is_loading = False
        self.error_message = ''
        self._generation = 0

    @property
    def has_error(self) -> bool:
        return bool(self.error_message)

    @property
    def can_calculate_midpoint(self) -> bool:
        return self.location_a is not None and self.location_b is not None

    @property
    def fairness(self) -> FairnessMetric:
        return self.engine.fairness(self.location_a, self.location_b, self.midpoint)

    @property
    def available_categories(self) -> List[str]:
        return available_categories(self.venues)

    # --- Locations and midpoint ---
    def set_locations(self, location_a: Location, location_b: Location) -> None:
        self.location_a = location_a
        self.location_b = location_b

    def calculate_midpoint(self) -> Location:
        return self._store_midpoint(lambda: self.engine.calculate_geographic_midpoint(self.location_a, self.location_b))

    def calculate_weighted_midpoint(self, weight_a: float, weight_b: float) -> Location:
        return self._store_midpoint(
            lambda: self.engine.calculate_weighted_midpoint(self.location_a, self.location_b, weight_a, weight_b)
        )

    def _store_midpoint(self, compute) -> Location:
        if not self.can_calculate_midpoint:
            raise ValueError('Both locations must be set before calculating a midpoint')
        self.error_message = ''
        try:
            self.midpoint = compute()
        except (InvalidCoordinateError, InvalidWeightError) as e:
            self.error_message = f"Failed to calculate midpoint: {e}"
            raise
        return self.midpoint

    # --- Searching ---
    async def search_async(self) -> List[Venue]:
        if self.midpoint is None or not self.can_calculate_midpoint:
            raise ValueError('A midpoint and both locations are required before searching')

        self._generation += 1
        generation = self._generation
        midpoint = self.midpoint
        self.is_loading = True
        self.error_message = ''
        self.state = SearchState.SEARCHING

        try:
            outcome = await self.coordinator.find_venues_async(
                midpoint, self.location_a, self.location_b, self.search_categories
            )
        except VenueSearchError as e:
            if generation == self._generation:
                logger.error(f"Venue search failed: {e}")
                self.venues = []
                self.filtered_venues = []
                self.outcome = None
                self.state = SearchState.FAILED
                self.error_message = f"Failed to search places: {e}"
                self.is_loading = False
            return self.filtered_venues

        if generation != self._generation:
            logger.debug(f"Discarding superseded search results (generation {generation})")
            return self.filtered_venues

        self.outcome = outcome
        self.venues = list(outcome.venues)
        self.state = outcome.state
        if outcome.is_empty:
            self.error_message = outcome.message
        self.is_loading = False
        self._apply_filters()
        return self.filtered_venues

    def search(self) -> List[Venue]:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(self.search_async())
        finally:
            loop.close()

    def refresh(self) -> List[Venue]:
        return self.search()

    def adjust_midpoint(self, latitude: float, longitude: float) -> List[Venue]:
        """Move the midpoint (e.g. a dragged marker) and search again around it"""
        self.midpoint = Location(latitude=latitude, longitude=longitude, name='Adjusted Midpoint')
        return self.search()

    # --- Filtering and sorting ---
    def toggle_category(self, category: str) -> List[Venue]:
        if category in self.selected_categories:
            self.selected_categories.remove(category)
        else:
            self.selected_categories.add(category)
        return self._apply_filters()

    def set_selected_categories(self, categories: Iterable[str]) -> List[Venue]:
        self.selected_categories = set(categories)
        return self._apply_filters()

    def clear_category_filters(self) -> List[Venue]:
        self.selected_categories = set()
        return self._apply_filters()

    def set_sort_option(self, option) -> List[Venue]:
        self.sort_option = SortOption.parse(option)
        return self._apply_filters()

    def _apply_filters(self) -> List[Venue]:
        self.filtered_venues = filter_and_sort(self.venues, self.selected_categories, self.sort_option)
        return self.filtered_venues

    def clear(self) -> None:
        self._generation += 1
        self.location_a = None
        self.location_b = None
        self.midpoint = None
        self.venues = []
        self.filtered_venues = []
        self.outcome = None
        self.state = SearchState.IDLE
        self.is_loading = False
        self.error_message = ''
