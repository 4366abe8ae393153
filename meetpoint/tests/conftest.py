import os

import pytest

# Keep the module-level app from writing app.log during tests
os.environ['LOG_FILE'] = ''

from meetpoint.config import Settings  # noqa: E402

from .fakes import make_record  # noqa: E402


@pytest.fixture
def settings():
    return Settings(google_maps_api_key=None, log_file=None, search_timeout_seconds=5.0)


@pytest.fixture
def bay_records():
    return [
        make_record('cafe-near', 37.7900, -122.3460, types=('cafe', 'food'), rating=4.5, price_level=1),
        make_record('cafe-far', 37.8000, -122.3000, types=('cafe',), rating=3.9, price_level=2),
        make_record('bar-mid', 37.7950, -122.3300, types=('bar',), rating=4.1, price_level=3),
    ]
