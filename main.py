# main.py

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from cs2_stats.config import load_settings
from cs2_stats.models import RANKABLE_FIELDS, is_valid_steam_id
from cs2_stats.orchestrator import ScraperManager
from cs2_stats.ui import TerminalUI

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_LIMIT = 20
DEFAULT_TOP_LIMIT = 10
DEFAULT_LOG_RETENTION_DAYS = 30

COMMAND_ALIASES = {
    '1': 'start',
    '2': 'stop',
    '3': 'stats',
    '4': 'reset',
    '5': 'logs',
    '6': 'add',
    '7': 'top',
    '8': 'cleanup',
    '9': 'help',
    '0': 'exit',
    'quit': 'exit',
    '?': 'help',
}


def parse_command(line: str) -> Tuple[str, List[str]]:
    """Split a console line into a canonical command name and its arguments."""
    parts = (line or '').strip().split()
    if not parts:
        return '', []
    command = parts[0].lower()
    return COMMAND_ALIASES.get(command, command), parts[1:]


async def _read_line(message: str) -> str:
    return await asyncio.to_thread(input, message)


def _positive_int(raw: Optional[str], default: int, name: str) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'")
    if value < 1:
        raise ValueError(f"{name} must be at least 1")
    return value


class ScraperConsole:
    """Interactive command loop around a ScraperManager.

    `start` runs the scraper as a background task so the prompt stays
    responsive and `stop` can reach the running loop.
    """

    def __init__(
        self,
        manager: ScraperManager,
        ui: Optional[TerminalUI] = None,
        prompt: Optional[Callable[[str], Awaitable[str]]] = None,
    ):
        self.manager = manager
        self.ui = ui or TerminalUI()
        self.prompt = prompt or _read_line
        self.scrape_task: Optional[asyncio.Task] = None

    async def _run_scraper(self) -> None:
        try:
            summary = await self.manager.start_scraping()
            self.ui.show_run_summary(summary)
        except Exception as e:
            self.ui.show_error(f"Scraping failed: {e}")

    async def handle(self, line: str) -> bool:
        """Execute one console line. Returns False when the console should exit."""
        command, args = parse_command(line)
        if not command:
            return True

        try:
            if command == 'start':
                if self.manager.is_active:
                    self.ui.show_warning("Scraper is already running")
                else:
                    self.scrape_task = asyncio.create_task(self._run_scraper())
                    self.ui.show_success("Scraping started in background. Type 'stop' to stop.")

            elif command == 'stop':
                if self.manager.stop_scraping():
                    self.ui.show_success("Stop requested, finishing the current player...")
                else:
                    self.ui.show_warning("Scraper is not currently running")

            elif command == 'stats':
                self.ui.show_stats(self.manager.get_stats(), is_running=self.manager.is_active)

            elif command == 'reset':
                confirmed = bool(args) and args[0].lower() in ('-y', 'yes')
                if not confirmed:
                    answer = await self.prompt("Reset all failed Steam IDs to pending? (y/N): ")
                    confirmed = answer.strip().lower() in ('y', 'yes')
                if confirmed:
                    count = self.manager.reset_failed_ids()
                    self.ui.show_success(f"Reset {count} failed Steam IDs to pending")
                else:
                    self.ui.show_warning("Reset cancelled")

            elif command == 'logs':
                limit = _positive_int(args[0] if args else None, DEFAULT_LOG_LIMIT, "Log limit")
                self.ui.show_logs(self.manager.get_logs(limit=limit))

            elif command == 'add':
                if not args:
                    self.ui.show_error("Usage: add <steam_id64> [<steam_id64> ...]")
                    return True
                values = [value for arg in args for value in arg.split(',') if value]
                invalid = [value for value in values if not is_valid_steam_id(value)]
                valid = [value for value in values if is_valid_steam_id(value)]
                if invalid:
                    self.ui.show_error(f"Invalid Steam ID(s), expected 17 digits: {', '.join(invalid)}")
                if valid:
                    count = self.manager.add_identifiers(valid)
                    self.ui.show_success(f"Queued {count} Steam ID(s)")

            elif command == 'top':
                limit = _positive_int(args[0] if args else None, DEFAULT_TOP_LIMIT, "Top limit")
                order_by = args[1].lower() if len(args) > 1 else 'kd_ratio'
                if order_by not in RANKABLE_FIELDS:
                    self.ui.show_error(f"Cannot rank by '{order_by}'. Choose one of: {', '.join(RANKABLE_FIELDS)}")
                    return True
                self.ui.show_top_players(self.manager.get_top_players(limit=limit, order_by=order_by), order_by)

            elif command == 'cleanup':
                days = _positive_int(args[0] if args else None, DEFAULT_LOG_RETENTION_DAYS, "Days")
                count = self.manager.cleanup_logs(days)
                self.ui.show_success(f"Deleted {count} log entries older than {days} days")

            elif command == 'help':
                self.ui.show_menu()

            elif command == 'exit':
                await self.shutdown()
                print("\nGoodbye!")
                return False

            else:
                self.ui.show_error(f"Unknown command '{command}'. Type 'help' for available commands.")

        except Exception as e:
            self.ui.show_error(str(e))

        return True

    async def shutdown(self) -> None:
        """Stop a running scrape and wait for it to wind down."""
        if self.manager.is_running:
            self.manager.stop_scraping()
        if self.scrape_task and not self.scrape_task.done():
            print("Waiting for the current player to finish...")
            await self.scrape_task

    async def run(self) -> None:
        self.ui.show_menu()
        while True:
            try:
                line = await self.prompt("\ncs2> ")
            except EOFError:
                line = 'exit'
            if not await self.handle(line):
                break


def main():
    ui = TerminalUI()
    try:
        settings = load_settings()
    except ValueError as e:
        ui.show_error(f"Invalid configuration: {e}")
        return

    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO), format=LOG_FORMAT)

    try:
        manager = ScraperManager.from_settings(settings)
    except RuntimeError as e:
        ui.show_error(str(e))
        return
    LOGGER.info("Using database at: %s", manager.db.db_path)

    console = ScraperConsole(manager, ui=ui)
    try:
        asyncio.run(console.run())
    except KeyboardInterrupt:
        print("\nGoodbye!")


if __name__ == '__main__':
    main()
