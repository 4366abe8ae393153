import asyncio
import logging
from time import perf_counter
from typing import Dict, Optional

from flask import Flask, g, jsonify, request
from flask_cors import CORS

from .config import Settings, configure_logging, get_settings
from .errors import GeocodingError, InvalidCoordinateError, InvalidWeightError, VenueSearchError
from .geo_math import KM_TO_MILES, geodesic_distance_km
from .maps_service import GoogleMapsService
from .midpoint import MidpointEngine
from .models import Location, SearchState, SortOption
from .places_adapter import parse_venue
from .presenter import annotate_venue, category_chip_label, estimate_travel_minutes, trip_summary
from .session import SearchSession
from .venue_search import VenueSearchCoordinator

logger = logging.getLogger(__name__)


def parse_location(value, field: str, **extra) -> Location:
    """
    Accept {"lat": .., "lng": ..} (or latitude/longitude) or a "lat,lng" string.

    Out-of-range values raise InvalidCoordinateError; they are never clamped.
    """
    if isinstance(value, dict):
        if value.get('lat', value.get('latitude')) is None or value.get('lng', value.get('longitude')) is None:
            raise ValueError(f"{field} must have lat and lng properties")
        location = Location.from_dict(value)
    elif isinstance(value, str):
        parts = [p.strip() for p in value.split(',')]
        if len(parts) != 2:
            raise ValueError(f"{field} must be a 'lat,lng' string")
        location = Location(latitude=parts[0], longitude=parts[1])
    else:
        raise ValueError(f"{field} is required")
    return location.copy_with(**extra) if extra else location


def _categories_arg(data: Dict, key: str, default):
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        value = value.split(',')
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{key} must be a list of category names")
    return [str(c).strip() for c in value if str(c).strip()]


def _run(coro):
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def create_app(settings: Optional[Settings] = None, maps_service=None) -> Flask:
    """
    Build the Flask API.

    ``maps_service`` is the places/geocoding provider; when omitted one is
    created from the configured API key. Without a provider the geometry
    endpoints still work and the provider-backed ones answer 500.
    """
    settings = settings or get_settings()

    if maps_service is None and settings.has_api_key:
        try:
            logger.info("Initializing Google Maps service...")
            maps_service = GoogleMapsService(
                settings.google_maps_api_key,
                max_workers=settings.places_max_workers,
                page_size=settings.places_page_size,
            )
            logger.info("Google Maps service initialized successfully")
        except ValueError as e:
            logger.error(f"Error initializing Google Maps service: {e}")
            maps_service = None
    elif maps_service is None:
        logger.warning("GOOGLE_MAPS_API_KEY not found or not configured in environment variables")

    engine = MidpointEngine()
    coordinator = None
    if maps_service is not None:
        coordinator = VenueSearchCoordinator(
            maps_service,
            executor=getattr(maps_service, 'executor', None),
            timeout_seconds=settings.search_timeout_seconds,
        )

    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes
    app.config['MEETPOINT_SETTINGS'] = settings

    # Per-request timing: record start time and log duration on completion
    @app.before_request
    def _start_timer():
        g._start_time = perf_counter()

    @app.after_request
    def _log_request_duration(response):
        start = getattr(g, '_start_time', None)
        if start is not None:
            duration_ms = (perf_counter() - start) * 1000.0
            response.headers['X-Process-Time-ms'] = f"{duration_ms:.1f}"
            logger.info(
                "request completed: method=%s path=%s status=%s duration_ms=%.1f remote_addr=%s",
                request.method,
                request.full_path if request.query_string else request.path,
                response.status_code,
                duration_ms,
                request.remote_addr,
            )
        return response

    @app.teardown_request
    def _teardown_request_log(error=None):
        if error is not None:
            start = getattr(g, '_start_time', None)
            duration_ms = (perf_counter() - start) * 1000.0 if start is not None else None
            logger.error(
                "request error: method=%s path=%s duration_ms=%s error=%s",
                request.method,
                request.path,
                f"{duration_ms:.1f}" if duration_ms is not None else 'unknown',
                repr(error),
            )

    def _provider_missing():
        logger.error("Google Maps API key not configured - cannot process request")
        return jsonify({'success': False, 'error': 'Google Maps API key not configured'}), 500

    def _json_body() -> Dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValueError('JSON data is required')
        return data

    def _venue_payload(venue, include_distance: bool = True) -> Dict:
        payload = annotate_venue(venue)
        if not include_distance:
            for key in ('distance_from_midpoint_km', 'distance_from_midpoint_miles', 'estimated_minutes_from_midpoint'):
                payload[key] = None
        if venue.photo_reference and hasattr(maps_service, 'photo_url'):
            payload['photo_url'] = maps_service.photo_url(venue.photo_reference)
        return payload

    def _session_payload(session: SearchSession) -> Dict:
        fairness = session.fairness
        outcome = session.outcome
        return {
            'location_a': session.location_a.to_dict(),
            'location_b': session.location_b.to_dict(),
            'midpoint': session.midpoint.to_dict(),
            'distance_between_km': engine.calculate_distance(session.location_a, session.location_b),
            'fairness': fairness.to_dict(),
            'trip_summary': trip_summary(fairness),
            'search': {
                'state': session.state.value,
                'radius_meters': outcome.radius if outcome else None,
                'attempted_radii_meters': list(outcome.attempted_radii) if outcome else [],
                'message': outcome.message if outcome else session.error_message,
            },
            'available_categories': [
                {'tag': tag, 'label': category_chip_label(tag)} for tag in session.available_categories
            ],
            'selected_categories': sorted(session.selected_categories),
            'sort': session.sort_option.value,
            'total_venues': len(session.venues),
            'venues': [_venue_payload(v) for v in session.filtered_venues],
        }

    def _run_session(data: Dict, location_a: Location, location_b: Location,
                     midpoint: Optional[Location], weights=None):
        categories = _categories_arg(data, 'categories', settings.default_categories)
        session = SearchSession(coordinator, engine, categories=categories)
        session.set_locations(location_a, location_b)
        if midpoint is not None:
            session.midpoint = midpoint
        elif weights is not None:
            session.calculate_weighted_midpoint(*weights)
        else:
            session.calculate_midpoint()
        session.sort_option = SortOption.parse(data.get('sort', SortOption.DISTANCE))
        session.selected_categories = set(_categories_arg(data, 'selected_categories', categories))

        _search_start = perf_counter()
        session.search()
        compute_ms = (perf_counter() - _search_start) * 1000.0
        logger.info("Venue search took %.1f ms (state=%s)", compute_ms, session.state.value)
        return session, compute_ms

    def _session_response(session: SearchSession, compute_ms: float, extra: Optional[Dict] = None):
        if session.state == SearchState.FAILED:
            response = jsonify({'success': False, 'error': session.error_message})
            status = 502
        else:
            data = _session_payload(session)
            if extra:
                data.update(extra)
            response = jsonify({'success': True, 'data': data})
            status = 200
        response.headers['X-Compute-Time-ms'] = f"{compute_ms:.1f}"
        return response, status

    def _weights(data: Dict, key_a: str, key_b: str):
        if data.get(key_a) is None and data.get(key_b) is None:
            return None
        return data.get(key_a, 1.0), data.get(key_b, 1.0)

    @app.route('/', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            'message': 'Meet in the Middle API is running!',
            'endpoints': {
                'find_middle_point': '/api/find-middle-point',
                'midpoint': '/api/midpoint',
                'venues': '/api/venues',
                'distance': '/api/distance',
                'geocode': '/api/geocode',
                'reverse_geocode': '/api/reverse-geocode',
                'autocomplete': '/api/autocomplete',
                'travel_time': '/api/travel-time',
                'place_details': '/api/places/<place_id>',
                'place_location': '/api/place-location/<place_id>',
                'config': '/api/config',
                'health': '/'
            },
            'provider_configured': maps_service is not None,
            'status': 'healthy'
        })

    @app.route('/api/geocode', methods=['POST'])
    def geocode_address():
        """
        Geocode a single address
        Expected JSON: {"address": "123 Main St, City, State"}
        """
        if maps_service is None:
            return _provider_missing()
        data = _json_body()
        address = data.get('address')
        if not address:
            return jsonify({'success': False, 'error': 'Address is required'}), 400

        logger.info(f"Attempting to geocode address: '{address}'")
        location = maps_service.geocode_address(address)
        if location is None:
            logger.warning(f"Failed to geocode address: '{address}'")
            return jsonify({'success': False, 'error': 'Could not geocode the provided address'}), 404
        return jsonify({'success': True, 'data': location.to_dict()})

    @app.route('/api/reverse-geocode', methods=['POST'])
    def reverse_geocode():
        """Expected JSON: {"lat": 40.7128, "lng": -74.0060, "is_current_location": false}"""
        if maps_service is None:
            return _provider_missing()
        data = _json_body()
        point = parse_location(data, 'location')
        location = maps_service.reverse_geocode(point, is_current_location=bool(data.get('is_current_location')))
        return jsonify({'success': True, 'data': location.to_dict()})

    @app.route('/api/autocomplete', methods=['GET'])
    def autocomplete():
        if coordinator is None:
            return _provider_missing()
        suggestions = coordinator.place_suggestions(request.args.get('q', ''))
        return jsonify({'success': True, 'data': suggestions})

    @app.route('/api/place-location/<place_id>', methods=['GET'])
    def place_location(place_id):
        """Resolve an autocomplete selection to coordinates"""
        if maps_service is None:
            return _provider_missing()
        location = maps_service.location_for_place(place_id)
        if location is None:
            return jsonify({'success': False, 'error': 'Place not found'}), 404
        return jsonify({'success': True, 'data': location.to_dict()})

    @app.route('/api/places/<place_id>', methods=['GET'])
    def place_details(place_id):
        """Venue details; pass ?midpoint=lat,lng to measure distance from it"""
        if maps_service is None:
            return _provider_missing()
        midpoint_arg = request.args.get('midpoint')
        midpoint = parse_location(midpoint_arg, 'midpoint') if midpoint_arg else None
        record = maps_service.place_details(place_id)
        venue = parse_venue(record, midpoint) if record else None
        if venue is None:
            return jsonify({'success': False, 'error': 'Place not found'}), 404
        return jsonify({'success': True, 'data': _venue_payload(venue, include_distance=midpoint is not None)})

    @app.route('/api/midpoint', methods=['POST'])
    def midpoint():
        """
        Midpoint and fairness for two coordinates
        Expected JSON: {
            "location_a": {"lat": .., "lng": ..},
            "location_b": {"lat": .., "lng": ..},
            "weight_a": 1.0, "weight_b": 2.0   // optional
        }
        """
        data = _json_body()
        location_a = parse_location(data.get('location_a'), 'location_a')
        location_b = parse_location(data.get('location_b'), 'location_b')
        weights = _weights(data, 'weight_a', 'weight_b')
        if weights is None:
            mid = engine.calculate_geographic_midpoint(location_a, location_b)
        else:
            mid = engine.calculate_weighted_midpoint(location_a, location_b, *weights)
        fairness = engine.fairness(location_a, location_b, mid)
        return jsonify({
            'success': True,
            'data': {
                'midpoint': mid.to_dict(),
                'distance_between_km': engine.calculate_distance(location_a, location_b),
                'search_radius_meters': VenueSearchCoordinator.initial_radius(location_a, location_b),
                'fairness': fairness.to_dict(),
                'trip_summary': trip_summary(fairness),
            }
        })

    @app.route('/api/distance', methods=['POST'])
    def distance():
        """Expected JSON: {"origin": {...}, "destination": {...}}"""
        data = _json_body()
        origin = parse_location(data.get('origin'), 'origin')
        destination = parse_location(data.get('destination'), 'destination')
        km = engine.calculate_distance(origin, destination)
        return jsonify({
            'success': True,
            'data': {
                'distance_km': km,
                'distance_miles': km * KM_TO_MILES,
                'geodesic_distance_km': geodesic_distance_km(origin, destination),
                'estimated_minutes': estimate_travel_minutes(km),
            }
        })

    @app.route('/api/venues', methods=['POST'])
    def venues():
        """
        Search, filter and sort venues around a midpoint
        Expected JSON: {
            "location_a": {...}, "location_b": {...},
            "midpoint": {...},                      // optional, computed when absent
            "categories": ["cafe", "restaurant"],   // searched categories
            "selected_categories": ["cafe"],        // filter, [] shows all
            "sort": "distance" | "rating" | "priceAsc" | "priceDesc"
        }
        """
        if coordinator is None:
            return _provider_missing()
        data = _json_body()
        location_a = parse_location(data.get('location_a'), 'location_a')
        location_b = parse_location(data.get('location_b'), 'location_b')
        mid = None
        if data.get('midpoint') is not None:
            mid = parse_location(data.get('midpoint'), 'midpoint', name='Adjusted Midpoint')
        session, compute_ms = _run_session(data, location_a, location_b, mid, _weights(data, 'weight_a', 'weight_b'))
        return _session_response(session, compute_ms)

    @app.route('/api/find-middle-point', methods=['POST'])
    def find_middle_point():
        """
        Find meeting venues between two addresses
        Expected JSON: {
            "address1": "123 Main St, City, State",
            "address2": "456 Oak Ave, City, State",
            "weight1": 1.0, "weight2": 1.0,        // optional
            "categories": [...], "selected_categories": [...], "sort": "distance"
        }
        """
        logger.info("=== FIND MIDDLE POINT REQUEST ===")
        if coordinator is None:
            return _provider_missing()
        data = _json_body()
        address1 = data.get('address1')
        address2 = data.get('address2')
        if not address1 or not address2:
            logger.error("Missing required addresses")
            return jsonify({'success': False, 'error': 'Both address1 and address2 are required'}), 400

        async def _geocode_both():
            return await asyncio.gather(
                maps_service.geocode_address_async(address1),
                maps_service.geocode_address_async(address2),
            )

        location1, location2 = _run(_geocode_both())
        if location1 is None:
            return jsonify({'success': False, 'error': f"Could not geocode address: {address1}"}), 404
        if location2 is None:
            return jsonify({'success': False, 'error': f"Could not geocode address: {address2}"}), 404

        session, compute_ms = _run_session(data, location1, location2, None, _weights(data, 'weight1', 'weight2'))
        logger.info("=== END FIND MIDDLE POINT REQUEST ===")
        return _session_response(session, compute_ms, extra={
            'address1': {'input': address1, 'geocoded': location1.to_dict()},
            'address2': {'input': address2, 'geocoded': location2.to_dict()},
        })

    @app.route('/api/travel-time', methods=['POST'])
    def travel_time():
        """
        Travel time between two points, live when possible
        Expected JSON: {
            "origin": {"lat": 40.7128, "lng": -74.0060},
            "destination": {"lat": 40.7589, "lng": -73.9851},
            "mode": "driving"   // optional: driving, walking, bicycling, transit
        }
        """
        data = _json_body()
        origin = parse_location(data.get('origin'), 'origin')
        destination = parse_location(data.get('destination'), 'destination')
        mode = data.get('mode', 'driving')

        seconds = maps_service.get_travel_time(origin, destination, mode=mode) if maps_service else None
        if seconds is not None:
            minutes = round(seconds / 60, 1)
            source = 'directions'
        else:
            minutes = estimate_travel_minutes(engine.calculate_distance(origin, destination))
            seconds = minutes * 60
            source = 'estimate'
        return jsonify({
            'success': True,
            'data': {
                'travel_time_seconds': seconds,
                'travel_time_minutes': minutes,
                'source': source,
                'directions_url': GoogleMapsService.directions_url(origin, destination, mode),
            }
        })

    @app.route('/api/config', methods=['GET'])
    def get_config():
        """Frontend configuration including the Google Maps API key"""
        return jsonify({
            'success': True,
            'data': {
                'googleMapsApiKey': settings.google_maps_api_key if settings.has_api_key else None,
                'apiBaseUrl': request.host_url.rstrip('/'),
                'defaultCategories': list(settings.default_categories),
                'sortOptions': [option.value for option in SortOption],
            }
        })

    @app.errorhandler(InvalidCoordinateError)
    @app.errorhandler(InvalidWeightError)
    @app.errorhandler(ValueError)
    def bad_request(error):
        logger.warning(f"Rejected request: {error}")
        return jsonify({'success': False, 'error': str(error)}), 400

    @app.errorhandler(VenueSearchError)
    @app.errorhandler(GeocodingError)
    def provider_error(error):
        logger.error(f"Provider error: {error}")
        return jsonify({'success': False, 'error': str(error)}), 502

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    return app


_settings = get_settings()
configure_logging(_settings)
app = create_app(_settings)
