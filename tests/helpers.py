# tests/helpers.py

import os
from typing import Dict, List, Optional

from cs2_stats.database import Database
from cs2_stats.scraper import DocumentSnapshot

STEAM_A = '76561198000000001'
STEAM_B = '76561198000000002'
STEAM_C = '76561198000000003'


def create_test_db(directory: str, name: str = 'test_cs2_stats.db') -> Database:
    """Create a fresh test database inside the given directory."""
    test_path = os.path.join(str(directory), name)
    if os.path.exists(test_path):
        os.remove(test_path)
    return Database(db_path=test_path)


# --- HTML builders ---

def svg_stat(label: str, value: str) -> str:
    """Chart widget: label beside an svg whose <text> draws the value."""
    return f'<div class="stat-card"><span>{label}</span><svg><text>{value}</text></svg></div>'


def labelled_stat(label: str, value: str) -> str:
    """Label and value as sibling spans in one container."""
    return f'<div class="stat"><span>{label}</span> <span>{value}</span></div>'


def stat_page(*blocks: str, title: str = 'PlayerOne - CS2 Stats', heading: Optional[str] = None) -> str:
    head = f'<title>{title}</title>' if title else ''
    h1 = f'<h1>{heading}</h1>' if heading else ''
    return (
        f'<!DOCTYPE html><html><head>{head}'
        '<script>var stats = {"kills": 1};</script></head>'
        f'<body>{h1}{"".join(blocks)}</body></html>'
    )


BASIC_PAGE = stat_page(
    svg_stat('K/D', '1.34'),
    labelled_stat('Headshot %', '42%'),
    heading='PlayerOne',
)

EMPTY_PAGE = stat_page('<div class="notice">This player has no CS2 matches</div>')


def make_document(html: str, steam_id64: str = STEAM_A) -> DocumentSnapshot:
    return DocumentSnapshot.from_html(html, url=f'https://csgostats.gg/player/{steam_id64}')


# --- Fakes for the orchestrator ---

class FakeStatsClient:
    """Stands in for StatsPageClient; serves canned pages or raises canned errors."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, errors: Optional[Dict[str, Exception]] = None):
        self.pages = pages or {}
        self.errors = errors or {}
        self.fetched: List[str] = []
        self.enter_count = 0
        self.exit_count = 0
        self.on_fetch = None

    async def __aenter__(self) -> 'FakeStatsClient':
        self.enter_count += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.exit_count += 1

    async def fetch_document(self, steam_id64: str) -> DocumentSnapshot:
        self.fetched.append(steam_id64)
        if self.on_fetch is not None:
            await self.on_fetch(steam_id64)
        if steam_id64 in self.errors:
            raise self.errors[steam_id64]
        return make_document(self.pages.get(steam_id64, BASIC_PAGE), steam_id64)


class SleepRecorder:
    """Async replacement for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
