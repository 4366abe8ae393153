import pytest

from meetpoint.geo_math import Coordinate, haversine_distance_km
from meetpoint.places_adapter import parse_suggestion, parse_venue, parse_venues

from .fakes import SAN_FRANCISCO, make_record


def test_parse_full_record():
    record = make_record(
        'abc123', 37.79, -122.35, types=('cafe', 'food'), rating=4.4, price_level=2, open_now=True,
        name='Blue Door', formatted_address='1 Market St', user_ratings_total=210,
        photos=[{'photo_reference': 'photo-1'}, {'photo_reference': 'photo-2'}],
        icon='https://maps.test/icon.png',
    )

    venue = parse_venue(record, SAN_FRANCISCO)

    assert venue.place_id == 'abc123'
    assert venue.name == 'Blue Door'
    assert venue.address == '1 Market St'
    assert venue.vicinity == 'abc123 Main St'
    assert venue.coordinate == Coordinate(37.79, -122.35)
    assert venue.rating == 4.4
    assert venue.user_ratings_total == 210
    assert venue.photo_reference == 'photo-1'
    assert venue.is_open is True
    assert venue.types == frozenset({'cafe', 'food'})
    assert venue.price_level == 2
    assert venue.price_tier == '$$'
    assert venue.icon == 'https://maps.test/icon.png'
    assert venue.distance_from_midpoint == pytest.approx(haversine_distance_km(SAN_FRANCISCO, venue.coordinate))


def test_parse_minimal_record_uses_defaults():
    venue = parse_venue({'place_id': 'p1', 'geometry': {'location': {'lat': 1.0, 'lng': 2.0}}}, None)

    assert venue.name == 'Unnamed place'
    assert venue.rating is None
    assert venue.price_tier is None
    assert venue.price_rank is None
    assert venue.is_open is False
    assert venue.types == frozenset()
    assert venue.photo_reference is None
    assert venue.distance_from_midpoint == 0.0


def test_parse_free_price_level():
    venue = parse_venue(make_record('p', 1.0, 1.0, price_level=0), SAN_FRANCISCO)
    assert venue.price_tier == 'Free'
    assert venue.price_rank == 0


@pytest.mark.parametrize('record', [
    {'name': 'No id', 'geometry': {'location': {'lat': 1.0, 'lng': 2.0}}},
    {'place_id': '', 'geometry': {'location': {'lat': 1.0, 'lng': 2.0}}},
    {'place_id': 'no-geometry'},
    {'place_id': 'bad-lat', 'geometry': {'location': {'lat': 95.0, 'lng': 2.0}}},
    'not a dict',
])
def test_parse_rejects_unusable_records(record):
    assert parse_venue(record, SAN_FRANCISCO) is None


@pytest.mark.parametrize('rating', [7.5, -1, 'great', float('nan'), True])
def test_parse_drops_invalid_rating(rating):
    venue = parse_venue(make_record('p', 1.0, 1.0, rating=rating), SAN_FRANCISCO)
    assert venue.rating is None


def test_parse_venues_skips_bad_records():
    records = [make_record('a', 1.0, 1.0), {'place_id': 'broken'}, make_record('b', 1.0, 1.1)]
    venues = parse_venues(records, SAN_FRANCISCO)
    assert [v.place_id for v in venues] == ['a', 'b']
    assert parse_venues(None, SAN_FRANCISCO) == []


def test_parse_suggestion():
    assert parse_suggestion({'description': 'Ferry Building, SF', 'place_id': 'fb', 'terms': []}) == {
        'description': 'Ferry Building, SF', 'place_id': 'fb'
    }
    assert parse_suggestion({'description': 'No id'}) is None
    assert parse_suggestion(None) is None
