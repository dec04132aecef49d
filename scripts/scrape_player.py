#!/usr/bin/env python3
# scripts/scrape_player.py
"""
CLI script for scraping a single csgostats.gg player page.

Usage:
    python scripts/scrape_player.py --steam-id 76561198000000001
    python scripts/scrape_player.py --steam-id 76561198000000001 --save
    python scripts/scrape_player.py --steam-id 76561198000000001 --headed --dump-tree tree.txt
"""

import sys
import os
import argparse
import asyncio
import logging

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Check Playwright availability before importing scraper
try:
    from cs2_stats.scraper import StatsPageClient, ScrapeError, extract
except ImportError as e:
    if 'playwright' in str(e).lower():
        print("✗ ERROR: Playwright not installed")
        print("")
        print("Install with:")
        print("  pip install playwright")
        print("Then run:")
        print("  python -m playwright install chromium")
        print("")
        sys.exit(1)
    else:
        raise

from cs2_stats.config import load_settings
from cs2_stats.database import Database
from cs2_stats.models import IdentifierStatus, is_valid_steam_id
from cs2_stats.orchestrator import ScraperManager


async def _scrape(args, settings) -> dict:
    client = StatsPageClient(
        headless=not args.headed,
        nav_timeout_ms=settings.nav_timeout_ms,
        stats_timeout_ms=settings.stats_timeout_ms,
    )
    async with client:
        if args.save:
            db = Database(args.db_path or settings.db_path)
            db.add_identifier(args.steam_id)
            row = db.get_identifier(args.steam_id)
            if row and row['status'] != IdentifierStatus.PENDING.value:
                db.reset_identifier(args.steam_id)
            manager = ScraperManager(db)
            result = await manager.process_single(client, args.steam_id)
            if not result['success']:
                raise ScrapeError(result['error'])
            return db.get_player_stats(args.steam_id)

        document = await client.fetch_document(args.steam_id)
        if args.dump_tree:
            with open(args.dump_tree, 'w', encoding='utf-8') as f:
                f.write('\n'.join(f"{node.tag}\t{node.text[:80]}" for node in document.iter_nodes()))
        extraction = extract(document)
        return {
            'steam_id64': args.steam_id,
            'player_name': extraction.display_name,
            'profile_url': extraction.source_url,
            **extraction.fields,
        }


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description='Scrape csgostats.gg stats for one Steam ID',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/scrape_player.py --steam-id 76561198000000001
  python scripts/scrape_player.py --steam-id 76561198000000001 --save
  python scripts/scrape_player.py --steam-id 76561198000000001 --headed
        """
    )

    parser.add_argument('--steam-id', required=True, help='SteamID64 (17 digits)')
    parser.add_argument('--save', action='store_true', help='Store the result in the database')
    parser.add_argument('--db-path', default=None, help='Database path (default: CS2_DB_PATH)')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument('--dump-tree', default=None, help='Write the parsed element tree to this file')

    args = parser.parse_args()

    if not is_valid_steam_id(args.steam_id):
        parser.error(f"Invalid Steam ID '{args.steam_id}': expected 17 digits")

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"✗ ERROR: Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    print("=" * 60)
    print(f"Scraping {StatsPageClient.BASE_URL.format(steam_id64=args.steam_id)}")
    print("=" * 60)

    try:
        stats = asyncio.run(_scrape(args, settings))
    except ScrapeError as e:
        print("\n" + "=" * 60)
        print("✗ ERROR: Scrape failed")
        print("=" * 60)
        print(str(e))
        print("")
        print("The player might be private, have no CS2 matches, or csgostats.gg changed its layout.")
        print("Try running with --headed to watch the page load.")
        print("")
        sys.exit(1)
    except Exception as e:
        print("\n" + "=" * 60)
        print("✗ ERROR")
        print("=" * 60)
        print(str(e))
        print("")
        sys.exit(1)

    print(f"\n✓ {stats.get('player_name') or 'Unknown'}")
    print("-" * 60)
    for key, value in stats.items():
        if key in ('steam_id64', 'player_name', 'id') or value is None:
            continue
        print(f"  {key:<22} {value}")
    if args.save:
        print(f"\nSaved to {args.db_path or settings.db_path}")
    print("")


if __name__ == '__main__':
    main()
