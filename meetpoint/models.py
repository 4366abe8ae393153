"""
Value types shared by the midpoint engine, venue search and ranking.

All of them are immutable; "updates" go through ``copy_with`` and return a
new instance.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional

from .geo_math import Coordinate, validate_coordinate


PRICE_TIERS = ('Free', '$', '$$', '$$$', '$$$$')


class SortOption(str, Enum):
    DISTANCE = 'distance'
    RATING = 'rating'
    PRICE_ASC = 'priceAsc'
    PRICE_DESC = 'priceDesc'

    @classmethod
    def parse(cls, value) -> 'SortOption':
        """Accept an enum member, its value ('priceAsc') or its name ('price_asc')"""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for option in cls:
            if text == option.value or text.upper() == option.name:
                return option
        raise ValueError(f"Unknown sort option: {value!r}")


class SearchState(str, Enum):
    IDLE = 'idle'
    SEARCHING = 'searching'
    SUCCESS = 'success'
    EMPTY = 'empty'
    FAILED = 'failed'


@dataclass(frozen=True)
class Location:
    """A user supplied point, a computed midpoint or a venue position"""

    latitude: float
    longitude: float
    id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    is_current_location: bool = False

    def __post_init__(self):
        validate_coordinate(self.latitude, self.longitude)
        object.__setattr__(self, 'latitude', float(self.latitude))
        object.__setattr__(self, 'longitude', float(self.longitude))

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    @classmethod
    def from_coordinate(cls, coordinate: Coordinate, **kwargs) -> 'Location':
        return cls(latitude=coordinate.latitude, longitude=coordinate.longitude, **kwargs)

    def copy_with(self, **changes) -> 'Location':
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'lat': self.latitude,
            'lng': self.longitude,
            'is_current_location': self.is_current_location,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Location':
        """Build from a dict with 'lat'/'lng' (or 'latitude'/'longitude') keys"""
        lat = data.get('lat', data.get('latitude'))
        lng = data.get('lng', data.get('longitude'))
        return cls(
            latitude=lat,
            longitude=lng,
            id=data.get('id'),
            name=data.get('name'),
            address=data.get('address') or data.get('formatted_address'),
            is_current_location=bool(data.get('is_current_location', False)),
        )


@dataclass(frozen=True)
class Venue:
    """A candidate meeting place returned by the places provider"""

    place_id: str
    name: str
    coordinate: Coordinate
    address: Optional[str] = None
    vicinity: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    photo_reference: Optional[str] = None
    is_open: bool = False
    types: FrozenSet[str] = field(default_factory=frozenset)
    price_level: Optional[int] = None
    price_tier: Optional[str] = None
    icon: Optional[str] = None
    distance_from_midpoint: float = 0.0

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude

    @property
    def price_rank(self) -> Optional[int]:
        """Ordinal position of the price tier (Free=0 ... $$$$=4), None when unknown"""
        if self.price_tier is None:
            return None
        try:
            return PRICE_TIERS.index(self.price_tier)
        except ValueError:
            return len(self.price_tier)

    def has_any_type(self, categories) -> bool:
        return not self.types.isdisjoint(categories)

    def copy_with(self, **changes) -> 'Venue':
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict:
        return {
            'place_id': self.place_id,
            'name': self.name,
            'address': self.address,
            'vicinity': self.vicinity,
            'lat': self.latitude,
            'lng': self.longitude,
            'rating': self.rating,
            'user_ratings_total': self.user_ratings_total,
            'photo_reference': self.photo_reference,
            'is_open': self.is_open,
            'types': sorted(self.types),
            'price_level': self.price_level,
            'price_tier': self.price_tier,
            'icon': self.icon,
            'distance_from_midpoint_km': self.distance_from_midpoint,
        }


@dataclass(frozen=True)
class FairnessMetric:
    """How evenly the midpoint splits the trip (distances in miles)"""

    distance_from_a: float
    distance_from_b: float
    delta: float
    label: str

    @classmethod
    def unknown(cls) -> 'FairnessMetric':
        return cls(distance_from_a=0.0, distance_from_b=0.0, delta=0.0, label='Unknown')

    @property
    def is_known(self) -> bool:
        return self.label != 'Unknown'

    def to_dict(self) -> Dict:
        return {
            'distance_from_a_miles': self.distance_from_a,
            'distance_from_b_miles': self.distance_from_b,
            'fairness_delta_miles': self.delta,
            'label': self.label,
        }
