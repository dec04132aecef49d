# cs2_stats/config.py
"""
Runtime settings read from environment variables.

All variables are optional; defaults match the values the scraper was tuned with.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DB_PATH = 'data/cs2_stats.db'


@dataclass(frozen=True)
class Settings:
    db_path: str = DEFAULT_DB_PATH
    batch_size: int = 5
    request_delay_ms: int = 2000
    batch_delay_ms: int = 1000
    headless: bool = True
    nav_timeout_ms: int = 60000
    stats_timeout_ms: int = 30000
    log_level: str = 'INFO'

    @property
    def request_delay(self) -> float:
        return self.request_delay_ms / 1000.0

    @property
    def batch_delay(self) -> float:
        return self.batch_delay_ms / 1000.0


def resolve_db_path(db_path: str) -> str:
    """Return an absolute database path anchored to project root when relative."""
    path = Path(db_path)
    if path.is_absolute():
        return str(path)
    return str(PROJECT_ROOT / path)


def _int_env(environ: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = str(environ.get(name, '') or '').strip()
    if raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _bool_env(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = str(environ.get(name, '') or '').strip().lower()
    if raw == '':
        return default
    if raw in ('1', 'true', 'yes', 'on'):
        return True
    if raw in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"{name} must be a boolean, got '{raw}'")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: Mapping to read instead of os.environ (used by tests)

    Raises:
        ValueError: If a variable holds an invalid value
    """
    env = os.environ if environ is None else environ

    db_path = str(env.get('CS2_DB_PATH', '') or '').strip() or DEFAULT_DB_PATH

    return Settings(
        db_path=resolve_db_path(db_path),
        batch_size=_int_env(env, 'CS2_BATCH_SIZE', 5, minimum=1),
        request_delay_ms=_int_env(env, 'CS2_REQUEST_DELAY_MS', 2000),
        batch_delay_ms=_int_env(env, 'CS2_BATCH_DELAY_MS', 1000),
        headless=_bool_env(env, 'CS2_HEADLESS', True),
        nav_timeout_ms=_int_env(env, 'CS2_NAV_TIMEOUT_MS', 60000, minimum=1),
        stats_timeout_ms=_int_env(env, 'CS2_STATS_TIMEOUT_MS', 30000, minimum=1),
        log_level=(str(env.get('CS2_LOG_LEVEL', '') or '').strip().upper() or 'INFO'),
    )
