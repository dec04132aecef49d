# cs2_stats/ui.py

from typing import Any, Dict, List, Optional


def _safe_print(message: str) -> None:
    """Print with Unicode fallback for restricted terminal encodings."""
    try:
        print(message)
    except UnicodeEncodeError:
        fallback = (
            message.replace("✅", "[OK]")
            .replace("⚠️", "[WARN]")
            .replace("❌", "[ERROR]")
        )
        print(fallback.encode("ascii", "replace").decode("ascii"))


class TerminalUI:
    """Simple terminal-based UI for the scraper console."""

    WIDTH = 50

    @staticmethod
    def _format_value(value: Any, decimals: int = 2) -> str:
        if value is None:
            return 'N/A'
        if isinstance(value, float):
            return f'{value:.{decimals}f}'
        return str(value)

    def _rule(self, char: str = "=") -> None:
        print(char * self.WIDTH)

    def show_menu(self):
        """Show available commands."""
        print("\n" + "=" * self.WIDTH)
        print("CS2 Stats Scraper")
        self._rule()
        print("1. start              Start scraping pending Steam IDs")
        print("2. stop               Stop after the current player")
        print("3. stats              Show queue and scrape statistics")
        print("4. reset [-y]         Reset failed Steam IDs to pending (asks first)")
        print("5. logs [N]           Show recent scrape logs")
        print("6. add <id> [<id>..]  Queue Steam IDs (17 digits)")
        print("7. top [N] [field]    Show top players")
        print("8. cleanup [days]     Delete old scrape logs")
        print("9. help               Show this menu")
        print("0. exit               Exit")
        self._rule()

    def show_stats(self, stats: Dict[str, Any], is_running: bool = False):
        """Display queue counters and scrape totals."""
        print("\n" + "=" * self.WIDTH)
        print("SCRAPING STATISTICS")
        self._rule()
        print(f"Total Steam IDs:     {stats.get('total_steam_ids', 0)}")
        print(f"Pending:             {stats.get('pending_steam_ids', 0)}")
        print(f"Processing:          {stats.get('processing_steam_ids', 0)}")
        print(f"Completed:           {stats.get('completed_steam_ids', 0)}")
        print(f"Failed:              {stats.get('failed_steam_ids', 0)}")

        print("\n" + "-" * self.WIDTH)
        print(f"Player records:      {stats.get('total_player_stats', 0)}")
        print(f"Successful scrapes:  {stats.get('successful_scrapes', 0)}")
        print(f"Failed scrapes:      {stats.get('failed_scrapes', 0)}")

        avg = stats.get('avg_execution_time')
        avg_text = f"{round(avg)}ms" if avg is not None else 'N/A'
        print(f"Avg execution time:  {avg_text}")
        print(f"Scraper running:     {'Yes' if is_running else 'No'}")
        self._rule()

    def show_logs(self, logs: List[Dict]):
        """Display recent scrape log entries, newest first."""
        if not logs:
            print("\nNo scrape logs yet.")
            return

        print("\n" + "=" * self.WIDTH)
        print("RECENT SCRAPE LOGS")
        self._rule()
        for entry in logs:
            status = str(entry.get('status') or '').upper()
            name = entry.get('player_name') or 'Unknown'
            line = f"[{entry.get('created_at')}] {status:<8} {entry.get('steam_id64')} ({name})"
            if entry.get('execution_time') is not None:
                line += f" {entry['execution_time']}ms"
            if entry.get('stats_extracted') is not None:
                line += f" {entry['stats_extracted']} stats"
            _safe_print(line)
            if status == 'FAILED' and entry.get('message'):
                _safe_print(f"    {entry['message']}")
        self._rule()

    def show_top_players(self, players: List[Dict], order_by: str):
        """Display a ranking by one stat column."""
        if not players:
            print(f"\nNo scraped players with {order_by} yet.")
            return

        print("\n" + "=" * self.WIDTH)
        print(f"TOP PLAYERS BY {order_by.upper()}")
        self._rule()
        for rank, player in enumerate(players, 1):
            name = player.get('player_name') or 'Unknown'
            value = self._format_value(player.get(order_by))
            _safe_print(f"{rank:>2}. {name:<20} {value:>10}  ({player.get('steam_id64')})")
        self._rule()

    def show_run_summary(self, summary: Optional[Dict[str, Any]]):
        """Display the result of a finished scraping run."""
        if not summary:
            return

        print("\n" + "=" * self.WIDTH)
        print("SCRAPING RUN FINISHED" if summary.get('completed') else "SCRAPING RUN STOPPED")
        self._rule()
        print(f"Processed:           {summary.get('processed', 0)}")
        print(f"Successful:          {summary.get('succeeded', 0)}")
        print(f"Failed:              {summary.get('failed', 0)}")
        print(f"Batches:             {summary.get('batches', 0)}")
        print(f"Total time:          {round(summary.get('elapsed_ms', 0) / 1000)}s")
        print(f"Average per player:  {summary.get('average_ms', 0)}ms")
        self._rule()

    def show_error(self, message: str):
        """Display error message."""
        _safe_print(f"\nERROR: {message}\n")

    def show_warning(self, message: str):
        _safe_print(f"\nWARNING: {message}\n")

    def show_success(self, message: str):
        """Display success message."""
        _safe_print(f"\n{message}\n")
