# cs2_stats/scraper/__init__.py
"""
Web scraping module for csgostats.gg player pages.

Playwright renders the page, the HTML is frozen into a DocumentSnapshot and
the heuristic rules in extraction.py turn it into stat fields.
"""

from .core import (
    NoDataFound,
    NotOkResponse,
    RenderTimeoutError,
    ScrapeError,
    StatsPageClient,
    TransportError,
)
from .document import DocNode, DocumentSnapshot
from .extraction import Extraction, extract, resolve_display_name
from .session import BrowserSession
from .validation import validate_fields

__all__ = [
    'StatsPageClient',
    'BrowserSession',
    'DocumentSnapshot',
    'DocNode',
    'Extraction',
    'extract',
    'resolve_display_name',
    'validate_fields',
    'ScrapeError',
    'TransportError',
    'NotOkResponse',
    'RenderTimeoutError',
    'NoDataFound',
]
