"""
JSON-lines Segment Store Adapter.

Implements SegmentStorePort on the local filesystem.
Directory structure: {base_path}/{segment}/{YYYY-MM-DD}.jsonl

Key behaviors:
- One JSON object per line; appends never rewrite existing bytes
- Appends to the same segment file are serialised by a per-path lock
- A corrupt line is skipped with a warning; the rest of the segment survives
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import date
from pathlib import Path
from typing import Any

from travelweb.core.ports.storage import (
    MissingSegmentError,
    SegmentReadError,
    StorageError,
)

logger = logging.getLogger(__name__)

SEGMENT_SUFFIX = ".jsonl"


class JsonlSegmentStore:
    """
    Filesystem implementation of SegmentStorePort.

    Example: segment "external-video-clicks", day 2026-10-18 ->
    {base_path}/external-video-clicks/2026-10-18.jsonl
    """

    def __init__(self, base_path: str | Path, *, create_dirs: bool = True) -> None:
        self.base_path = Path(base_path)
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        if create_dirs:
            self.base_path.mkdir(parents=True, exist_ok=True)

    def _segment_path(self, segment: str, day: date) -> Path:
        # Sanitize segment name to prevent directory traversal
        safe_segment = segment.replace("..", "").strip("/")
        if not safe_segment:
            raise ValueError(f"Invalid segment name: {segment!r}")
        return self.base_path / safe_segment / f"{day.isoformat()}{SEGMENT_SUFFIX}"

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = threading.Lock()
                self._locks[path] = lock
            return lock

    def append(self, segment: str, day: date, record: dict[str, Any]) -> None:
        path = self._segment_path(segment, day)
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))

        with self._lock_for(path):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                raise StorageError(f"Append failed for {path}: {e}") from e

    def exists(self, segment: str, day: date) -> bool:
        return self._segment_path(segment, day).is_file()

    def read(self, segment: str, day: date) -> list[dict[str, Any]]:
        path = self._segment_path(segment, day)
        if not path.is_file():
            raise MissingSegmentError(segment, day)

        try:
            with open(path, encoding="utf-8") as f:
                lines = f.readlines()
        except (OSError, UnicodeDecodeError) as e:
            raise SegmentReadError(segment, day, str(e)) from e

        records: list[dict[str, Any]] = []
        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt record at %s:%d", path, lineno)
                continue
            if not isinstance(record, dict):
                logger.warning("Skipping non-object record at %s:%d", path, lineno)
                continue
            records.append(record)

        return records
