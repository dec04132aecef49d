# tests/test_config.py

import os

import pytest

from cs2_stats.config import DEFAULT_DB_PATH, PROJECT_ROOT, Settings, load_settings, resolve_db_path


def test_defaults():
    settings = load_settings({})

    assert settings.db_path == str(PROJECT_ROOT / DEFAULT_DB_PATH)
    assert settings.batch_size == 5
    assert settings.request_delay == 2.0
    assert settings.batch_delay == 1.0
    assert settings.headless is True
    assert settings.nav_timeout_ms == 60000
    assert settings.stats_timeout_ms == 30000
    assert settings.log_level == 'INFO'


def test_environment_overrides(tmp_path):
    db_path = str(tmp_path / 'stats.db')
    settings = load_settings({
        'CS2_DB_PATH': db_path,
        'CS2_BATCH_SIZE': '10',
        'CS2_REQUEST_DELAY_MS': '500',
        'CS2_BATCH_DELAY_MS': '0',
        'CS2_HEADLESS': 'false',
        'CS2_LOG_LEVEL': 'debug',
    })

    assert settings.db_path == db_path
    assert settings.batch_size == 10
    assert settings.request_delay == 0.5
    assert settings.batch_delay == 0.0
    assert settings.headless is False
    assert settings.log_level == 'DEBUG'


def test_reads_os_environ_by_default(monkeypatch):
    monkeypatch.setenv('CS2_BATCH_SIZE', '3')
    assert load_settings().batch_size == 3


def test_invalid_integer_names_variable():
    with pytest.raises(ValueError, match='CS2_BATCH_SIZE'):
        load_settings({'CS2_BATCH_SIZE': 'five'})


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError, match='CS2_BATCH_SIZE'):
        load_settings({'CS2_BATCH_SIZE': '0'})


def test_invalid_boolean():
    with pytest.raises(ValueError, match='CS2_HEADLESS'):
        load_settings({'CS2_HEADLESS': 'maybe'})


def test_relative_db_path_anchored_at_project_root():
    assert resolve_db_path('data/x.db') == os.path.join(str(PROJECT_ROOT), 'data', 'x.db')


def test_settings_is_frozen():
    with pytest.raises(Exception):
        Settings().batch_size = 1
