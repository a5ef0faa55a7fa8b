"""
IP inventory database.

SQLite database storing what downstream consumers derive from scan events:
- ip_inventory: latest status per address (upsert by address)
- ip_status_changes: one row each time an address changes status
- scan_results: completed scan summaries

InventoryRecorder plugs into the engine as an event sink. It only reads
events and never feeds anything back into a scan.

Uses WAL mode for crash safety and concurrent reads.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from ._types import (
    CompleteEvent,
    ProbeOutcome,
    ProbeStatus,
    ResultEvent,
    ScanEvent,
    ScanSummary,
    now_utc,
)
from .events import EventSink

logger = logging.getLogger(__name__)


SCHEMA = """
-- Latest known state per address
CREATE TABLE IF NOT EXISTS ip_inventory (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ip_address TEXT NOT NULL UNIQUE,
    ip_value INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'unknown',
    hostname TEXT,
    method TEXT,
    latency_ms REAL,
    last_seen_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Status transitions detected while upserting
CREATE TABLE IF NOT EXISTS ip_status_changes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ip_address TEXT NOT NULL,
    previous_status TEXT,
    new_status TEXT NOT NULL,
    detected_at TEXT NOT NULL
);

-- Completed scans
CREATE TABLE IF NOT EXISTS scan_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    target TEXT NOT NULL,
    method TEXT NOT NULL,
    total_hosts INTEGER NOT NULL,
    active_hosts INTEGER NOT NULL,
    duration_ms REAL NOT NULL,
    results TEXT NOT NULL,  -- JSON array
    started_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_inventory_value ON ip_inventory(ip_value);
CREATE INDEX IF NOT EXISTS idx_inventory_status ON ip_inventory(status);
CREATE INDEX IF NOT EXISTS idx_status_changes_detected ON ip_status_changes(detected_at);
CREATE INDEX IF NOT EXISTS idx_scan_results_created ON scan_results(created_at);
"""


def _iso_format(dt: datetime) -> str:
    """Format datetime as ISO string."""
    return dt.isoformat()


def _parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string."""
    if not s:
        return None
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


@dataclass
class InventoryEntry:
    """One row of ip_inventory."""
    ip_address: str
    status: str
    hostname: Optional[str]
    method: Optional[str]
    latency_ms: Optional[float]
    last_seen_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


@dataclass
class StatusChange:
    """One row of ip_status_changes."""
    ip_address: str
    previous_status: Optional[str]
    new_status: str
    detected_at: datetime


class InventoryDatabase:
    """SQLite database for the IP inventory and scan history."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._ensure_directory()
        self._init_db()

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        """Initialize database with schema."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.commit()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Inventory
    # -------------------------------------------------------------------------

    def upsert_outcome(
        self,
        outcome: ProbeOutcome,
        hostname: Optional[str] = None,
    ) -> tuple[bool, bool]:
        """
        Insert or update the inventory row for an outcome's address.

        last_seen_at only moves forward when the host answered. A stored
        hostname is kept unless a new one is given.

        Returns: (is_new, status_changed)
        """
        now = _iso_format(now_utc())
        status = outcome.status.value
        seen_at = now if outcome.status == ProbeStatus.ACTIVE else None

        with self._get_connection() as conn:
            existing = conn.execute(
                "SELECT status FROM ip_inventory WHERE ip_address = ?",
                (outcome.address,)
            ).fetchone()

            if existing:
                previous = existing["status"]
                conn.execute("""
                    UPDATE ip_inventory SET
                        status = ?,
                        hostname = COALESCE(?, hostname),
                        method = ?,
                        latency_ms = ?,
                        last_seen_at = COALESCE(?, last_seen_at),
                        updated_at = ?
                    WHERE ip_address = ?
                """, (
                    status,
                    hostname,
                    outcome.method.value,
                    outcome.latency_ms,
                    seen_at,
                    now,
                    outcome.address,
                ))
                changed = previous != status
                if changed:
                    self._record_change(conn, outcome.address, previous, status, now)
                conn.commit()
                return (False, changed)

            conn.execute("""
                INSERT INTO ip_inventory (
                    ip_address, ip_value, status, hostname, method,
                    latency_ms, last_seen_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                outcome.address,
                outcome.sort_key,
                status,
                hostname,
                outcome.method.value,
                outcome.latency_ms,
                seen_at,
                now,
                now,
            ))
            self._record_change(conn, outcome.address, None, status, now)
            conn.commit()
            return (True, False)

    def _record_change(
        self,
        conn: sqlite3.Connection,
        ip_address: str,
        previous: Optional[str],
        new: str,
        detected_at: str,
    ) -> None:
        conn.execute(
            "INSERT INTO ip_status_changes (ip_address, previous_status, new_status, detected_at) "
            "VALUES (?, ?, ?, ?)",
            (ip_address, previous, new, detected_at),
        )
        if previous is not None:
            logger.info(f"Status change: {ip_address} {previous} -> {new}")

    def get_by_address(self, ip_address: str) -> Optional[InventoryEntry]:
        """Get inventory entry by IP address."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM ip_inventory WHERE ip_address = ?", (ip_address,)
            ).fetchone()
            if row:
                return self._row_to_entry(row)
            return None

    def list_inventory(
        self,
        status: Optional[ProbeStatus] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[InventoryEntry]:
        """List inventory entries in ascending address order."""
        query = "SELECT * FROM ip_inventory WHERE 1=1"
        params: list = []

        if status:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY ip_value ASC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_entry(row) for row in rows]

    def get_status_changes(self, limit: int = 50) -> list[StatusChange]:
        """Most recent status transitions, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM ip_status_changes ORDER BY id DESC LIMIT ?",
                (limit,)
            ).fetchall()
            return [
                StatusChange(
                    ip_address=row["ip_address"],
                    previous_status=row["previous_status"],
                    new_status=row["new_status"],
                    detected_at=_parse_datetime(row["detected_at"]),
                )
                for row in rows
            ]

    # -------------------------------------------------------------------------
    # Scan history
    # -------------------------------------------------------------------------

    def record_scan(self, summary: ScanSummary) -> int:
        """Store a completed scan summary. Returns its row id."""
        ordered = summary.sorted_by_address()
        with self._get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO scan_results (
                    target, method, total_hosts, active_hosts, duration_ms,
                    results, started_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                summary.target,
                summary.method.value,
                summary.total_hosts,
                summary.active_hosts,
                summary.duration_ms,
                json.dumps([o.to_dict() for o in ordered.outcomes]),
                _iso_format(summary.started_at),
                _iso_format(now_utc()),
            ))
            conn.commit()
            return cursor.lastrowid

    def get_scan_history(self, limit: int = 10) -> list[dict]:
        """Most recent scans, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM scan_results ORDER BY id DESC LIMIT ?",
                (limit,)
            ).fetchall()
            return [
                {
                    "id": row["id"],
                    "target": row["target"],
                    "method": row["method"],
                    "totalHosts": row["total_hosts"],
                    "activeHosts": row["active_hosts"],
                    "durationMs": row["duration_ms"],
                    "results": json.loads(row["results"]),
                    "startedAt": row["started_at"],
                }
                for row in rows
            ]

    def _row_to_entry(self, row: sqlite3.Row) -> InventoryEntry:
        """Convert database row to InventoryEntry."""
        return InventoryEntry(
            ip_address=row["ip_address"],
            status=row["status"],
            hostname=row["hostname"],
            method=row["method"],
            latency_ms=row["latency_ms"],
            last_seen_at=_parse_datetime(row["last_seen_at"]),
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
        )


class InventoryRecorder(EventSink):
    """
    Event sink that mirrors scan events into an InventoryDatabase.

    Database errors are logged, never raised into the scan.
    """

    def __init__(self, db: InventoryDatabase):
        self.db = db

    async def emit(self, event: ScanEvent) -> None:
        try:
            if isinstance(event, ResultEvent):
                self.db.upsert_outcome(event.outcome)
            elif isinstance(event, CompleteEvent):
                self.db.record_scan(event.summary)
        except sqlite3.Error as e:
            logger.error(f"Inventory write failed: {e}")
