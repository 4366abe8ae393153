import logging

from meetpoint.config import Settings, configure_logging

ENV_KEYS = ('GOOGLE_MAPS_API_KEY', 'DEFAULT_CATEGORIES', 'SEARCH_TIMEOUT_SECONDS', 'PLACES_MAX_WORKERS',
            'PLACES_PAGE_SIZE', 'LOG_LEVEL', 'LOG_FILE')


def clear_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults(monkeypatch):
    clear_env(monkeypatch)
    settings = Settings.from_env()

    assert settings.google_maps_api_key is None
    assert not settings.has_api_key
    assert settings.default_categories == ('cafe', 'restaurant', 'bar')
    assert settings.search_timeout_seconds == 15.0
    assert settings.log_file == 'app.log'


def test_values_from_environment(monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv('GOOGLE_MAPS_API_KEY', 'AIza-test')
    monkeypatch.setenv('DEFAULT_CATEGORIES', 'park, museum,')
    monkeypatch.setenv('SEARCH_TIMEOUT_SECONDS', '2.5')
    monkeypatch.setenv('PLACES_PAGE_SIZE', '5')
    monkeypatch.setenv('LOG_LEVEL', 'debug')
    monkeypatch.setenv('LOG_FILE', '')

    settings = Settings.from_env()

    assert settings.has_api_key
    assert settings.default_categories == ('park', 'museum')
    assert settings.search_timeout_seconds == 2.5
    assert settings.places_page_size == 5
    assert settings.log_level == 'DEBUG'
    assert settings.log_file is None


def test_invalid_numbers_fall_back(monkeypatch, caplog):
    clear_env(monkeypatch)
    monkeypatch.setenv('PLACES_MAX_WORKERS', 'many')
    monkeypatch.setenv('SEARCH_TIMEOUT_SECONDS', 'soon')

    with caplog.at_level(logging.WARNING, logger='meetpoint.config'):
        settings = Settings.from_env()

    assert settings.places_max_workers == 10
    assert settings.search_timeout_seconds == 15.0
    assert 'PLACES_MAX_WORKERS' in caplog.text


def test_placeholder_key_is_not_configured():
    assert not Settings(google_maps_api_key='your_api_key_here').has_api_key


def test_configure_logging_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    configure_logging(Settings(log_file=None))
    assert not (tmp_path / 'app.log').exists()
