"""
Category filtering and sorting of venue lists.

Both steps return new lists and never touch their input. Sorting is
stable, so ties keep their incoming order, and venues missing the sort
key (no rating, no price) always go last.
"""

from typing import Iterable, List, Optional

from .models import SortOption, Venue


def apply_filters(venues: Iterable[Venue], selected_categories: Optional[Iterable[str]]) -> List[Venue]:
    """
    Keep venues tagged with at least one selected category.

    An empty selection means "show all".
    """
    venues = list(venues)
    selected = set(selected_categories or ())
    if not selected:
        return venues
    return [venue for venue in venues if venue.has_any_type(selected)]


def _missing_last(value, descending: bool = False):
    # (0, key) sorts before (1, ...) so known values come first
    if value is None:
        return (1, 0)
    return (0, -value if descending else value)


def sort_venues(venues: Iterable[Venue], option=SortOption.DISTANCE) -> List[Venue]:
    option = SortOption.parse(option)
    venues = list(venues)

    if option == SortOption.DISTANCE:
        return sorted(venues, key=lambda v: v.distance_from_midpoint)
    if option == SortOption.RATING:
        return sorted(venues, key=lambda v: _missing_last(v.rating, descending=True))
    if option == SortOption.PRICE_ASC:
        return sorted(venues, key=lambda v: _missing_last(v.price_rank))
    if option == SortOption.PRICE_DESC:
        return sorted(venues, key=lambda v: _missing_last(v.price_rank, descending=True))
    raise ValueError(f"Unsupported sort option: {option}")


def filter_and_sort(venues: Iterable[Venue], selected_categories: Optional[Iterable[str]],
                    option=SortOption.DISTANCE) -> List[Venue]:
    return sort_venues(apply_filters(venues, selected_categories), option)


def available_categories(venues: Iterable[Venue]) -> List[str]:
    """Every category tag present in ``venues``, sorted"""
    tags = set()
    for venue in venues:
        tags.update(venue.types)
    return sorted(tags)
