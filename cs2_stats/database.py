# cs2_stats/database.py

import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from cs2_stats.config import resolve_db_path
from cs2_stats.models import (
    IdentifierStatus,
    LogPhase,
    RANKABLE_FIELDS,
    STAT_FIELDS,
    validate_transition,
)

LOGGER = logging.getLogger(__name__)

# Millisecond timestamps keep created_at ordering stable for rows added in the same second.
NOW_SQL = "strftime('%Y-%m-%d %H:%M:%f', 'now')"


class Database:
    """Queue, stat and scrape-log storage on top of sqlite.

    A connection is opened per operation and closed right after, so a long
    scrape run never holds one idle while it waits between requests.
    """

    def __init__(self, db_path: str = 'data/cs2_stats.db'):
        self.db_path = resolve_db_path(db_path)
        self.init_database()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row  # Access columns by name
        try:
            conn.execute("PRAGMA busy_timeout = 30000")
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_database(self):
        """Create tables if they don't exist."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            try:
                os.makedirs(db_dir, exist_ok=True)
            except OSError as e:
                raise RuntimeError(f"Failed to create database directory '{db_dir}': {e}")

        try:
            with self._connect() as conn:
                # WAL improves concurrency, but enabling it requires a write lock.
                # If another process holds the DB briefly, keep startup non-fatal.
                self._set_wal_mode_best_effort(conn)

                cursor = conn.cursor()

                # Work queue
                cursor.execute(f"""
                    CREATE TABLE IF NOT EXISTS steam_ids (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        steam_id64 TEXT UNIQUE NOT NULL,
                        status TEXT NOT NULL DEFAULT 'pending'
                            CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
                        priority INTEGER NOT NULL DEFAULT 1,
                        created_at TEXT NOT NULL DEFAULT ({NOW_SQL}),
                        updated_at TEXT NOT NULL DEFAULT ({NOW_SQL})
                    )
                """)
                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_steam_ids_queue
                    ON steam_ids (status, priority DESC, created_at ASC)
                """)

                # Latest scrape result per Steam ID
                cursor.execute(f"""
                    CREATE TABLE IF NOT EXISTS player_stats (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        steam_id64 TEXT UNIQUE NOT NULL,
                        player_name TEXT,
                        profile_url TEXT,

                        -- Ratios
                        kd_ratio REAL,
                        hltv_rating REAL,

                        -- Percentages kept as displayed ("42%")
                        win_rate TEXT,
                        headshot_percentage TEXT,
                        clutch_success TEXT,
                        entry_success TEXT,

                        -- Counters
                        adr INTEGER,
                        matches_played INTEGER,
                        matches_won INTEGER,
                        matches_lost INTEGER,
                        matches_tied INTEGER,
                        kills INTEGER,
                        deaths INTEGER,
                        assists INTEGER,
                        headshots INTEGER,
                        total_damage INTEGER,
                        rounds_played INTEGER,

                        last_scraped TEXT NOT NULL DEFAULT ({NOW_SQL}),
                        scrape_success BOOLEAN NOT NULL DEFAULT 0,
                        error_message TEXT
                    )
                """)

                # Audit trail of every attempt
                cursor.execute(f"""
                    CREATE TABLE IF NOT EXISTS scrape_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        steam_id64 TEXT NOT NULL,
                        status TEXT NOT NULL
                            CHECK (status IN ('started', 'success', 'failed')),
                        message TEXT,
                        execution_time INTEGER,
                        stats_extracted INTEGER,
                        created_at TEXT NOT NULL DEFAULT ({NOW_SQL})
                    )
                """)
                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_scrape_logs_steam_id
                    ON scrape_logs (steam_id64, created_at)
                """)

                self._commit_with_retry(conn, context="init schema commit")
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to initialize database at '{self.db_path}': {e}")

    def _commit_with_retry(
        self,
        conn: sqlite3.Connection,
        retries: int = 8,
        delay_seconds: float = 0.25,
        context: str = "commit",
    ) -> None:
        """
        Retry commit on transient SQLITE_BUSY/locked errors.
        """
        last_error = None
        for attempt in range(retries):
            try:
                conn.commit()
                return
            except sqlite3.OperationalError as e:
                last_error = e
                if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                    raise
                if attempt == retries - 1:
                    break
                time.sleep(delay_seconds)
        raise RuntimeError(
            f"Failed to {context}: database remained locked after {retries} attempts ({last_error})"
        )

    def _set_wal_mode_best_effort(
        self, conn: sqlite3.Connection, retries: int = 5, delay_seconds: float = 0.2
    ) -> None:
        """Try to enable WAL without failing startup if the DB is temporarily locked."""
        for attempt in range(retries):
            try:
                conn.execute("PRAGMA journal_mode = WAL")
                return
            except sqlite3.OperationalError as e:
                msg = str(e).lower()
                if "locked" not in msg and "busy" not in msg:
                    raise
                if attempt == retries - 1:
                    LOGGER.warning("Could not enable WAL mode (database locked); continuing. (%s)", e)
                    return
                time.sleep(delay_seconds)

    # --- Steam ID queue ---

    def add_identifier(self, steam_id64: str, priority: int = 1) -> None:
        """Queue a Steam ID, or update its priority if it is already queued."""
        self.add_identifiers([(steam_id64, priority)])

    def add_identifiers(self, steam_ids: Iterable[Any]) -> int:
        """
        Queue several Steam IDs in one transaction.

        Args:
            steam_ids: Plain Steam IDs (priority 1) or (steam_id64, priority) pairs

        Returns:
            Number of rows submitted
        """
        rows = []
        for item in steam_ids:
            if isinstance(item, (list, tuple)):
                steam_id64, priority = item[0], item[1]
            else:
                steam_id64, priority = item, 1
            steam_id64 = str(steam_id64 or '').strip()
            if not steam_id64:
                continue
            rows.append((steam_id64, int(priority)))

        if not rows:
            return 0

        try:
            with self._connect() as conn:
                conn.executemany(f"""
                    INSERT INTO steam_ids (steam_id64, priority)
                    VALUES (?, ?)
                    ON CONFLICT(steam_id64) DO UPDATE SET
                        priority = excluded.priority,
                        updated_at = {NOW_SQL}
                """, rows)
                self._commit_with_retry(conn, context="add steam ids commit")
            return len(rows)
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to add Steam IDs: {e}")

    def list_pending(self, limit: int = 10) -> List[Dict]:
        """Pending Steam IDs, highest priority first, oldest first within a priority."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT steam_id64, priority
                    FROM steam_ids
                    WHERE status = 'pending'
                    ORDER BY priority DESC, created_at ASC, id ASC
                    LIMIT ?
                """, (int(limit),))
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to list pending Steam IDs: {e}")

    def get_identifier(self, steam_id64: str) -> Optional[Dict]:
        """Get a single queue row by Steam ID."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT steam_id64, status, priority, created_at, updated_at
                    FROM steam_ids
                    WHERE steam_id64 = ?
                """, (steam_id64,))
                row = cursor.fetchone()
                return dict(row) if row else None
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to get Steam ID '{steam_id64}': {e}")

    def get_identifiers_by_status(self, status: str) -> List[str]:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT steam_id64 FROM steam_ids WHERE status = ? ORDER BY id",
                    (IdentifierStatus(status).value,),
                )
                return [row["steam_id64"] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to list Steam IDs with status '{status}': {e}")

    def set_status(self, steam_id64: str, status: str) -> None:
        """
        Move a Steam ID to a new status.

        Raises:
            IllegalTransitionError: If the move is not part of the queue state machine
            RuntimeError: If the Steam ID is unknown or the write fails
        """
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT status FROM steam_ids WHERE steam_id64 = ?", (steam_id64,))
                row = cursor.fetchone()
                if not row:
                    raise RuntimeError(f"Steam ID '{steam_id64}' not found")

                new_status = validate_transition(row["status"], status)
                cursor.execute(f"""
                    UPDATE steam_ids
                    SET status = ?, updated_at = {NOW_SQL}
                    WHERE steam_id64 = ?
                """, (new_status.value, steam_id64))
                self._commit_with_retry(conn, context="status update commit")
        except sqlite3.Error as e:
            raise RuntimeError(
                f"Failed to set status of '{steam_id64}' to '{getattr(status, 'value', status)}': {e}"
            )

    def reset_failed(self) -> int:
        """Move every failed Steam ID back to pending. Returns the number reset."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(f"""
                    UPDATE steam_ids
                    SET status = 'pending', updated_at = {NOW_SQL}
                    WHERE status = 'failed'
                """)
                self._commit_with_retry(conn, context="reset failed commit")
                return cursor.rowcount
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to reset failed Steam IDs: {e}")

    def reset_identifier(self, steam_id64: str) -> None:
        """Requeue a single completed or failed Steam ID."""
        self.set_status(steam_id64, IdentifierStatus.PENDING)

    def recover_stale_processing(self) -> int:
        """Return rows left in 'processing' by a crashed run to 'pending'."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(f"""
                    UPDATE steam_ids
                    SET status = 'pending', updated_at = {NOW_SQL}
                    WHERE status = 'processing'
                """)
                self._commit_with_retry(conn, context="recover processing commit")
                return cursor.rowcount
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to recover stale processing rows: {e}")

    # --- Player stats ---

    def upsert_stat_success(
        self,
        steam_id64: str,
        fields: Dict[str, Any],
        player_name: Optional[str] = None,
        profile_url: Optional[str] = None,
    ) -> None:
        """
        Store a successful scrape. Every stat column is overwritten (absent
        fields become NULL) and any previous error is cleared.
        """
        columns = ['player_name', 'profile_url', *STAT_FIELDS]
        values = [player_name, profile_url, *[fields.get(name) for name in STAT_FIELDS]]
        placeholders = ', '.join('?' for _ in columns)
        updates = ',\n'.join(f"{name} = excluded.{name}" for name in columns)

        try:
            with self._connect() as conn:
                conn.execute(f"""
                    INSERT INTO player_stats (
                        steam_id64, {', '.join(columns)}, last_scraped, scrape_success
                    ) VALUES (?, {placeholders}, {NOW_SQL}, 1)
                    ON CONFLICT(steam_id64) DO UPDATE SET
                        {updates},
                        last_scraped = {NOW_SQL},
                        scrape_success = 1,
                        error_message = NULL
                """, (steam_id64, *values))
                self._commit_with_retry(conn, context="save player stats commit")
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to save stats for '{steam_id64}': {e}")

    def upsert_stat_failure(self, steam_id64: str, error_message: str) -> None:
        """Record a failed scrape without touching previously stored stats."""
        try:
            with self._connect() as conn:
                conn.execute(f"""
                    INSERT INTO player_stats (steam_id64, last_scraped, scrape_success, error_message)
                    VALUES (?, {NOW_SQL}, 0, ?)
                    ON CONFLICT(steam_id64) DO UPDATE SET
                        last_scraped = {NOW_SQL},
                        scrape_success = 0,
                        error_message = excluded.error_message
                """, (steam_id64, error_message))
                self._commit_with_retry(conn, context="save player error commit")
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to save error for '{steam_id64}': {e}")

    def get_player_stats(self, steam_id64: str) -> Optional[Dict]:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT * FROM player_stats WHERE steam_id64 = ?", (steam_id64,))
                row = cursor.fetchone()
                return dict(row) if row else None
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to get stats for '{steam_id64}': {e}")

    def get_all_player_stats(self, limit: int = 100, offset: int = 0) -> List[Dict]:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT * FROM player_stats
                    ORDER BY last_scraped DESC
                    LIMIT ? OFFSET ?
                """, (int(limit), int(offset)))
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to get player stats: {e}")

    def get_top_players(self, limit: int = 10, order_by: str = 'kd_ratio') -> List[Dict]:
        """Best successfully scraped players by one stat column."""
        if order_by not in RANKABLE_FIELDS:
            order_by = 'kd_ratio'

        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(f"""
                    SELECT steam_id64, player_name, {order_by}, matches_played, last_scraped
                    FROM player_stats
                    WHERE scrape_success = 1 AND {order_by} IS NOT NULL
                    ORDER BY {order_by} DESC
                    LIMIT ?
                """, (int(limit),))
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to get top players by '{order_by}': {e}")

    # --- Scrape logs ---

    def log_start(self, steam_id64: str) -> int:
        """Open a log entry for a scrape attempt. Returns its id."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT INTO scrape_logs (steam_id64, status, message) VALUES (?, ?, ?)",
                    (steam_id64, LogPhase.STARTED.value, 'Scraping started'),
                )
                self._commit_with_retry(conn, context="log start commit")
                return cursor.lastrowid
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to log scrape start for '{steam_id64}': {e}")

    def log_success(self, log_id: int, steam_id64: str, duration_ms: int, fields_extracted: int) -> None:
        try:
            with self._connect() as conn:
                conn.execute("""
                    UPDATE scrape_logs
                    SET status = ?,
                        message = 'Scraping completed successfully',
                        execution_time = ?,
                        stats_extracted = ?
                    WHERE id = ? AND steam_id64 = ?
                """, (LogPhase.SUCCESS.value, int(duration_ms), int(fields_extracted), log_id, steam_id64))
                self._commit_with_retry(conn, context="log success commit")
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to log scrape success for '{steam_id64}': {e}")

    def log_failure(self, log_id: int, steam_id64: str, duration_ms: int, message: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("""
                    UPDATE scrape_logs
                    SET status = ?,
                        message = ?,
                        execution_time = ?
                    WHERE id = ? AND steam_id64 = ?
                """, (LogPhase.FAILED.value, message, int(duration_ms), log_id, steam_id64))
                self._commit_with_retry(conn, context="log failure commit")
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to log scrape failure for '{steam_id64}': {e}")

    def get_scrape_logs(self, limit: int = 50, steam_id64: Optional[str] = None) -> List[Dict]:
        """Most recent log entries, optionally for one Steam ID."""
        query = """
            SELECT sl.*, ps.player_name
            FROM scrape_logs sl
            LEFT JOIN player_stats ps ON sl.steam_id64 = ps.steam_id64
        """
        params: List[Any] = []
        if steam_id64:
            query += " WHERE sl.steam_id64 = ?"
            params.append(steam_id64)
        query += " ORDER BY sl.created_at DESC, sl.id DESC LIMIT ?"
        params.append(int(limit))

        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(query, params)
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to get scrape logs: {e}")

    def cleanup_old_logs(self, days_old: int = 30) -> int:
        """Delete log entries older than the given number of days."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "DELETE FROM scrape_logs WHERE created_at < datetime('now', ?)",
                    (f"-{int(days_old)} days",),
                )
                self._commit_with_retry(conn, context="log cleanup commit")
                return cursor.rowcount
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to clean up scrape logs: {e}")

    # --- Summary ---

    def get_stats_summary(self) -> Dict[str, Any]:
        """Queue and scrape counters for the stats command."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT
                        (SELECT COUNT(*) FROM steam_ids) AS total_steam_ids,
                        (SELECT COUNT(*) FROM steam_ids WHERE status = 'pending') AS pending_steam_ids,
                        (SELECT COUNT(*) FROM steam_ids WHERE status = 'processing') AS processing_steam_ids,
                        (SELECT COUNT(*) FROM steam_ids WHERE status = 'completed') AS completed_steam_ids,
                        (SELECT COUNT(*) FROM steam_ids WHERE status = 'failed') AS failed_steam_ids,
                        (SELECT COUNT(*) FROM player_stats) AS total_player_stats,
                        (SELECT COUNT(*) FROM player_stats WHERE scrape_success = 1) AS successful_scrapes,
                        (SELECT COUNT(*) FROM player_stats WHERE scrape_success = 0) AS failed_scrapes,
                        (SELECT AVG(execution_time) FROM scrape_logs WHERE status = 'success') AS avg_execution_time
                """)
                return dict(cursor.fetchone())
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to get scraping stats: {e}")
