"""
SQLite Segment Store Adapter.

Implements SegmentStorePort with a single append-only table. A segment is the
set of rows sharing (segment, day); seq preserves append order.

Key behaviors:
- Each append is one INSERT in its own transaction; SQLite serialises writers
- Rows are never updated or deleted
- A row whose payload is not valid JSON is skipped with a warning
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date
from typing import Any

from travelweb.core.ports.storage import (
    MissingSegmentError,
    SegmentReadError,
    StorageError,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS segment_records (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    segment TEXT NOT NULL,
    day TEXT NOT NULL,
    payload TEXT NOT NULL,
    appended_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_segment_records_segment_day
    ON segment_records (segment, day);
"""


class SQLiteSegmentStore:
    """SQLite implementation of SegmentStorePort."""

    def __init__(self, db_path: str, *, timeout: float = 30.0) -> None:
        self.db_path = db_path
        self._timeout = timeout
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=self._timeout)

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.executescript(SCHEMA)
        finally:
            conn.close()

    def append(self, segment: str, day: date, record: dict[str, Any]) -> None:
        payload = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO segment_records (segment, day, payload) VALUES (?, ?, ?)",
                    (segment, day.isoformat(), payload),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Append failed for {segment}/{day.isoformat()}: {e}") from e
        finally:
            conn.close()

    def exists(self, segment: str, day: date) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT 1 FROM segment_records WHERE segment = ? AND day = ? LIMIT 1",
                (segment, day.isoformat()),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Lookup failed for {segment}/{day.isoformat()}: {e}") from e
        finally:
            conn.close()
        return row is not None

    def read(self, segment: str, day: date) -> list[dict[str, Any]]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT seq, payload FROM segment_records "
                "WHERE segment = ? AND day = ? ORDER BY seq",
                (segment, day.isoformat()),
            ).fetchall()
        except sqlite3.Error as e:
            raise SegmentReadError(segment, day, str(e)) from e
        finally:
            conn.close()

        if not rows:
            raise MissingSegmentError(segment, day)

        records: list[dict[str, Any]] = []
        for seq, payload in rows:
            try:
                record = json.loads(payload)
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt record seq=%d in %s/%s", seq, segment, day)
                continue
            if isinstance(record, dict):
                records.append(record)
        return records
