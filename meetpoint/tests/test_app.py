from unittest.mock import patch

import pytest
from googlemaps.exceptions import ApiError

from meetpoint.app import create_app, parse_location
from meetpoint.errors import InvalidCoordinateError
from meetpoint.geo_math import haversine_distance_km
from meetpoint.maps_service import GoogleMapsService
from meetpoint.models import Location
from meetpoint.presenter import estimate_travel_minutes

from .fakes import OAKLAND, SAN_FRANCISCO, FakeMapsService, make_record

SF = {'lat': SAN_FRANCISCO.latitude, 'lng': SAN_FRANCISCO.longitude}
OAK = {'lat': OAKLAND.latitude, 'lng': OAKLAND.longitude}


@pytest.fixture
def maps(bay_records):
    return FakeMapsService(
        results={'cafe': bay_records[:2], 'bar': bay_records[2:]},
        geocodes={'San Francisco': SAN_FRANCISCO, 'Oakland': OAKLAND},
        details={'cafe-near': dict(bay_records[0], photos=[{'photo_reference': 'ref-9'}])},
        predictions=[{'description': 'Oakland, CA', 'place_id': 'oak'}],
    )


@pytest.fixture
def client(settings, maps):
    app = create_app(settings, maps_service=maps)
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def bare_client(settings):
    app = create_app(settings)
    app.config['TESTING'] = True
    return app.test_client()


def test_health_check(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'
    assert response.get_json()['provider_configured'] is True
    assert 'X-Process-Time-ms' in response.headers


def test_unknown_route_is_json_404(client):
    response = client.get('/api/nope')
    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'error': 'Endpoint not found'}


def test_config_hides_missing_key(client):
    data = client.get('/api/config').get_json()['data']
    assert data['googleMapsApiKey'] is None
    assert data['defaultCategories'] == ['cafe', 'restaurant', 'bar']
    assert data['sortOptions'] == ['distance', 'rating', 'priceAsc', 'priceDesc']


def test_midpoint(client):
    response = client.post('/api/midpoint', json={'location_a': SF, 'location_b': OAK})

    assert response.status_code == 200
    data = response.get_json()['data']
    assert 37.75 < data['midpoint']['lat'] < 37.83
    assert data['midpoint']['name'] == 'Midpoint'
    assert data['fairness']['label'] == 'Perfectly Fair'
    assert data['trip_summary']['fairness_color'] == 'green'
    assert 3000 <= data['search_radius_meters'] <= 50000


def test_weighted_midpoint_accepts_string_coordinates(client):
    response = client.post('/api/midpoint', json={
        'location_a': '37.7749,-122.4194', 'location_b': '37.8044,-122.2711', 'weight_a': 1, 'weight_b': 3,
    })
    assert response.status_code == 200
    assert response.get_json()['data']['midpoint']['name'] == 'Weighted Midpoint'


@pytest.mark.parametrize('body', [
    {'location_a': {'lat': 95, 'lng': 0}, 'location_b': OAK},
    {'location_a': SF},
    {'location_a': SF, 'location_b': OAK, 'weight_a': 0, 'weight_b': 0},
    {'location_a': 'not,a,point', 'location_b': OAK},
])
def test_midpoint_rejects_bad_input(client, body):
    response = client.post('/api/midpoint', json=body)
    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_midpoint_requires_json(client):
    response = client.post('/api/midpoint', data='nope', content_type='text/plain')
    assert response.status_code == 400


def test_distance(client):
    data = client.post('/api/distance', json={'origin': SF, 'destination': OAK}).get_json()['data']
    assert data['distance_km'] == pytest.approx(13.4, abs=0.5)
    assert data['distance_miles'] == pytest.approx(data['distance_km'] * 0.621371)
    assert data['geodesic_distance_km'] == pytest.approx(data['distance_km'], rel=0.01)


def test_venues(client):
    response = client.post('/api/venues', json={'location_a': SF, 'location_b': OAK})

    assert response.status_code == 200
    assert 'X-Compute-Time-ms' in response.headers
    data = response.get_json()['data']
    assert [v['place_id'] for v in data['venues']] == ['cafe-near', 'bar-mid', 'cafe-far']
    assert data['search']['state'] == 'success'
    assert data['total_venues'] == 3
    assert {'tag': 'cafe', 'label': 'Cafes'} in data['available_categories']
    assert data['venues'][0]['category_names'] == ['Cafe', 'Food']


def test_venues_filter_and_sort(client):
    response = client.post('/api/venues', json={
        'location_a': SF, 'location_b': OAK, 'selected_categories': ['cafe'], 'sort': 'priceDesc',
    })
    data = response.get_json()['data']
    assert [v['place_id'] for v in data['venues']] == ['cafe-far', 'cafe-near']
    assert data['sort'] == 'priceDesc'
    assert data['total_venues'] == 3


def test_venues_around_adjusted_midpoint(client, maps):
    response = client.post('/api/venues', json={
        'location_a': SF, 'location_b': OAK, 'midpoint': {'lat': 37.80, 'lng': -122.30},
    })
    data = response.get_json()['data']
    assert data['midpoint']['name'] == 'Adjusted Midpoint'
    assert data['venues'][0]['place_id'] == 'cafe-far'
    assert maps.calls[0][0].latitude == 37.80


def test_venues_rejects_unknown_sort(client):
    response = client.post('/api/venues', json={'location_a': SF, 'location_b': OAK, 'sort': 'cheapest'})
    assert response.status_code == 400


def test_venues_empty_result(settings):
    app = create_app(settings, maps_service=FakeMapsService())
    response = app.test_client().post('/api/venues', json={'location_a': SF, 'location_b': OAK})

    assert response.status_code == 200
    search = response.get_json()['data']['search']
    assert search['state'] == 'empty'
    assert search['message'] == 'No venues found within 50 km of the midpoint'
    assert search['attempted_radii_meters'][-1] == 50000


def test_venues_provider_failure_is_502(settings, bay_records):
    maps = FakeMapsService(results={'cafe': bay_records}, errors={'bar': RuntimeError('REQUEST_DENIED')})
    app = create_app(settings, maps_service=maps)

    response = app.test_client().post('/api/venues', json={'location_a': SF, 'location_b': OAK})

    assert response.status_code == 502
    assert 'REQUEST_DENIED' in response.get_json()['error']


def test_find_middle_point(client):
    response = client.post('/api/find-middle-point', json={'address1': 'San Francisco', 'address2': 'Oakland'})

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['address1']['geocoded']['lat'] == SAN_FRANCISCO.latitude
    assert data['address2']['input'] == 'Oakland'
    assert data['venues'][0]['place_id'] == 'cafe-near'
    assert data['trip_summary']['fairness'] == 'Perfectly Fair'


def test_find_middle_point_missing_address(client):
    response = client.post('/api/find-middle-point', json={'address1': 'San Francisco'})
    assert response.status_code == 400


def test_find_middle_point_unknown_address(client):
    response = client.post('/api/find-middle-point', json={'address1': 'San Francisco', 'address2': 'Atlantis'})
    assert response.status_code == 404
    assert 'Atlantis' in response.get_json()['error']


def test_geocode(client):
    response = client.post('/api/geocode', json={'address': 'Oakland'})
    assert response.get_json()['data']['lat'] == OAKLAND.latitude
    assert client.post('/api/geocode', json={'address': 'Atlantis'}).status_code == 404
    assert client.post('/api/geocode', json={}).status_code == 400


def test_reverse_geocode(client):
    response = client.post('/api/reverse-geocode', json={'lat': 37.79, 'lng': -122.39, 'is_current_location': True})
    data = response.get_json()['data']
    assert data['address'] == '1 Reverse Rd'
    assert data['is_current_location'] is True


def test_autocomplete(client, maps):
    data = client.get('/api/autocomplete?q=Oak').get_json()['data']
    assert data == [{'description': 'Oakland, CA', 'place_id': 'oak'}]
    assert client.get('/api/autocomplete?q=').get_json()['data'] == []
    assert maps.autocomplete_calls == ['Oak']


def test_place_details(client):
    response = client.get('/api/places/cafe-near?midpoint=37.79,-122.35')

    data = response.get_json()['data']
    assert data['name'] == 'Place cafe-near'
    assert data['photo_url'] == 'https://photos.test/ref-9?w=400'
    assert data['distance_from_midpoint_km'] > 0
    assert client.get('/api/places/missing').status_code == 404


def test_place_details_without_midpoint_has_no_distance(client):
    data = client.get('/api/places/cafe-near').get_json()['data']
    assert data['distance_from_midpoint_km'] is None


def test_place_location(client):
    data = client.get('/api/place-location/cafe-near').get_json()['data']
    assert data['id'] == 'cafe-near'
    assert client.get('/api/place-location/missing').status_code == 404


def test_travel_time_from_directions(settings):
    app = create_app(settings, maps_service=FakeMapsService(travel_seconds=1500))
    data = app.test_client().post('/api/travel-time', json={'origin': SF, 'destination': OAK}).get_json()['data']

    assert data['source'] == 'directions'
    assert data['travel_time_minutes'] == 25.0
    assert data['directions_url'].startswith('https://www.google.com/maps/dir/')


def test_travel_time_falls_back_to_estimate(client):
    data = client.post('/api/travel-time', json={'origin': SF, 'destination': OAK}).get_json()['data']
    assert data['source'] == 'estimate'
    assert data['travel_time_minutes'] == estimate_travel_minutes(haversine_distance_km(SAN_FRANCISCO, OAKLAND))


def test_provider_endpoints_without_key(bare_client):
    assert bare_client.post('/api/venues', json={'location_a': SF, 'location_b': OAK}).status_code == 500
    assert bare_client.post('/api/geocode', json={'address': 'x'}).status_code == 500
    assert bare_client.get('/api/autocomplete?q=x').status_code == 500
    # geometry still works
    assert bare_client.post('/api/midpoint', json={'location_a': SF, 'location_b': OAK}).status_code == 200


def test_parse_location():
    assert parse_location('1.5, 2.5', 'origin') == Location(latitude=1.5, longitude=2.5)
    assert parse_location({'latitude': 1, 'longitude': 2}, 'origin', name='X').name == 'X'
    with pytest.raises(InvalidCoordinateError):
        parse_location({'lat': 0, 'lng': 190}, 'origin')
    with pytest.raises(ValueError):
        parse_location(None, 'origin')


@pytest.fixture
def google_client(settings):
    with patch('meetpoint.maps_service.googlemaps.Client') as client_cls:
        service = GoogleMapsService('test-key', max_workers=2)
        app = create_app(settings, maps_service=service)
        yield app.test_client(), client_cls.return_value
        service.cleanup()


def test_autocomplete_provider_failure_is_502(google_client):
    client, maps_client = google_client
    maps_client.places_autocomplete.side_effect = ApiError('OVER_QUERY_LIMIT', 'quota exhausted')

    response = client.get('/api/autocomplete?q=Oak')

    assert response.status_code == 502
    assert 'OVER_QUERY_LIMIT' in response.get_json()['error']


def test_place_details_provider_failure_is_502(google_client):
    client, maps_client = google_client
    maps_client.place.side_effect = ApiError('REQUEST_DENIED', 'key rejected')

    response = client.get('/api/places/abc')

    assert response.status_code == 502
    assert 'REQUEST_DENIED' in response.get_json()['error']
