# cs2_stats/orchestrator.py

import asyncio
import functools
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from cs2_stats.config import Settings
from cs2_stats.database import Database
from cs2_stats.models import IdentifierStatus
from cs2_stats.scraper import StatsPageClient, extract

LOGGER = logging.getLogger(__name__)


class ScraperManager:
    """Work through the pending Steam ID queue one player at a time.

    Items are scraped strictly in queue order with a fixed pause between
    requests. Any failure of a single item is recorded against that item
    and the batch moves on; only faults outside an item (e.g. the queue
    query itself) end the run.
    """

    def __init__(
        self,
        db: Database,
        client_factory: Optional[Callable[[], Any]] = None,
        batch_size: int = 5,
        request_delay: float = 2.0,
        batch_delay: float = 1.0,
        extractor: Callable = extract,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.db = db
        self.client_factory = client_factory or StatsPageClient
        self.batch_size = batch_size
        self.request_delay = request_delay
        self.batch_delay = batch_delay
        self.extractor = extractor
        self.sleep = sleep

        self.is_running = False
        self._run_active = False
        self.processed_count = 0
        self.success_count = 0
        self.failure_count = 0
        # Steam IDs already tried in the current run
        self._attempted = set()

    @classmethod
    def from_settings(cls, settings: Settings, db: Optional[Database] = None) -> 'ScraperManager':
        client_factory = functools.partial(
            StatsPageClient,
            headless=settings.headless,
            nav_timeout_ms=settings.nav_timeout_ms,
            stats_timeout_ms=settings.stats_timeout_ms,
        )
        return cls(
            db or Database(settings.db_path),
            client_factory=client_factory,
            batch_size=settings.batch_size,
            request_delay=settings.request_delay,
            batch_delay=settings.batch_delay,
        )

    @property
    def is_active(self) -> bool:
        """True while a run is in progress, including the wind-down after stop."""
        return self._run_active

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    # --- Per-item procedure ---

    async def process_single(self, client, steam_id64: str) -> Dict[str, Any]:
        """Scrape one Steam ID and record the outcome. Never raises for item failures."""
        started = time.monotonic()
        log_id = None

        try:
            self._attempted.add(steam_id64)
            self.db.set_status(steam_id64, IdentifierStatus.PROCESSING)
            log_id = self.db.log_start(steam_id64)
            LOGGER.info("Processing Steam ID: %s", steam_id64)

            document = await client.fetch_document(steam_id64)
            extraction = self.extractor(document)
            duration_ms = self._elapsed_ms(started)

            self.db.upsert_stat_success(
                steam_id64,
                extraction.fields,
                player_name=extraction.display_name,
                profile_url=extraction.source_url,
            )
            self.db.set_status(steam_id64, IdentifierStatus.COMPLETED)
            self.db.log_success(log_id, steam_id64, duration_ms, extraction.field_count)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            self._record_failure(steam_id64, log_id, self._elapsed_ms(started), message)
            self.failure_count += 1
            LOGGER.warning("Failed to process %s: %s", steam_id64, message)
            return {'success': False, 'steam_id64': steam_id64, 'error': message}
        finally:
            self.processed_count += 1

        self.success_count += 1
        LOGGER.info(
            "Successfully processed %s (%d stats in %dms)",
            steam_id64, extraction.field_count, duration_ms,
        )
        return {'success': True, 'steam_id64': steam_id64, 'stats': extraction.field_count}

    def _record_failure(self, steam_id64: str, log_id: Optional[int], duration_ms: int, message: str) -> None:
        steps = [
            ("save error", lambda: self.db.upsert_stat_failure(steam_id64, message)),
            ("mark failed", lambda: self._mark_failed(steam_id64)),
        ]
        if log_id is not None:
            steps.append(
                ("log failure", lambda: self.db.log_failure(log_id, steam_id64, duration_ms, message))
            )

        for label, step in steps:
            try:
                step()
            except Exception:
                LOGGER.exception("Could not %s for %s", label, steam_id64)

    def _mark_failed(self, steam_id64: str) -> None:
        # A pending row must pass through 'processing' to reach 'failed'.
        row = self.db.get_identifier(steam_id64)
        if row and row['status'] == IdentifierStatus.PENDING.value:
            self.db.set_status(steam_id64, IdentifierStatus.PROCESSING)
        self.db.set_status(steam_id64, IdentifierStatus.FAILED)

    # --- Batches and runs ---

    async def process_batch(self, client) -> Dict[str, Any]:
        """
        Process up to batch_size pending Steam IDs.

        Returns:
            Dict with processed/successful/failed counts. `completed` is True
            when nothing pending is left to try in this run.
        """
        queued = self.db.list_pending(self.batch_size + len(self._attempted))
        pending = [row for row in queued if row['steam_id64'] not in self._attempted][:self.batch_size]

        if not pending:
            if queued:
                LOGGER.warning(
                    "%d Steam IDs are still pending after being attempted in this run", len(queued)
                )
            else:
                LOGGER.info("No pending Steam IDs found")
            return {'processed': 0, 'successful': 0, 'failed': 0, 'completed': True}

        LOGGER.info("Processing batch of %d Steam IDs", len(pending))
        results: List[Dict[str, Any]] = []

        for position, row in enumerate(pending):
            if not self.is_running:
                LOGGER.info("Scraping stopped by user")
                break

            results.append(await self.process_single(client, row['steam_id64']))

            if position < len(pending) - 1 and self.is_running:
                LOGGER.debug("Waiting %.1fs before next request...", self.request_delay)
                await self.sleep(self.request_delay)

        return {
            'processed': len(results),
            'successful': sum(1 for r in results if r['success']),
            'failed': sum(1 for r in results if not r['success']),
            'completed': False,
        }

    async def start_scraping(self) -> Optional[Dict[str, Any]]:
        """
        Run batches until the queue is empty or a stop is requested.

        Returns:
            Run summary, or None if a run is already in progress
        """
        if self._run_active:
            LOGGER.warning("Scraper is already running")
            return None

        self._run_active = True
        self.is_running = True
        self.processed_count = 0
        self.success_count = 0
        self.failure_count = 0
        self._attempted = set()

        LOGGER.info(
            "Starting scraping process (batch size: %d, delay: %.1fs)",
            self.batch_size, self.request_delay,
        )
        started = time.monotonic()
        batch_count = 0
        drained = False

        try:
            recovered = self.db.recover_stale_processing()
            if recovered:
                LOGGER.warning("Returned %d stale 'processing' Steam IDs to pending", recovered)

            async with self.client_factory() as client:
                while self.is_running:
                    batch = await self.process_batch(client)
                    if batch['completed']:
                        drained = True
                        LOGGER.info("All pending Steam IDs have been processed")
                        break

                    batch_count += 1
                    LOGGER.info(
                        "Batch #%d completed: %d successful, %d failed",
                        batch_count, batch['successful'], batch['failed'],
                    )
                    if self.is_running:
                        await self.sleep(self.batch_delay)
        except Exception:
            LOGGER.exception("Scraping process failed")
            raise
        finally:
            self.is_running = False
            self._run_active = False

        elapsed_ms = self._elapsed_ms(started)
        summary = {
            'processed': self.processed_count,
            'succeeded': self.success_count,
            'failed': self.failure_count,
            'batches': batch_count,
            'elapsed_ms': elapsed_ms,
            'average_ms': int(elapsed_ms / self.processed_count) if self.processed_count else 0,
            'completed': drained,
            'cancelled': not drained,
        }
        LOGGER.info(
            "Scraping finished: %d processed, %d successful, %d failed in %ds",
            summary['processed'], summary['succeeded'], summary['failed'], round(elapsed_ms / 1000),
        )
        return summary

    def stop_scraping(self) -> bool:
        """Ask the running loop to stop after the item in flight. Returns False if idle."""
        if not self.is_running:
            LOGGER.warning("Scraper is not currently running")
            return False

        LOGGER.info("Stopping scraper...")
        self.is_running = False
        return True

    # --- Queue and store operations ---

    def add_identifiers(self, steam_ids: Iterable[Any]) -> int:
        count = self.db.add_identifiers(steam_ids)
        LOGGER.info("Added %d Steam IDs to the queue", count)
        return count

    def get_stats(self) -> Dict[str, Any]:
        return self.db.get_stats_summary()

    def get_logs(self, limit: int = 20, steam_id64: Optional[str] = None) -> List[Dict]:
        return self.db.get_scrape_logs(limit=limit, steam_id64=steam_id64)

    def get_top_players(self, limit: int = 10, order_by: str = 'kd_ratio') -> List[Dict]:
        return self.db.get_top_players(limit=limit, order_by=order_by)

    def reset_failed_ids(self) -> int:
        count = self.db.reset_failed()
        LOGGER.info("Reset %d failed Steam IDs to pending", count)
        return count

    def reset_identifier(self, steam_id64: str) -> None:
        self.db.reset_identifier(steam_id64)

    def cleanup_logs(self, days_old: int = 30) -> int:
        count = self.db.cleanup_old_logs(days_old)
        LOGGER.info("Deleted %d scrape log entries older than %d days", count, days_old)
        return count
