"""Persistent event log for tracking dependency changes."""

from __future__ import annotations

import fcntl
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import orjson
from typing_extensions import Self

from depcat._version import version as _depcat_version
from depcat.constants import LOCK_FILENAME, STORAGE_FILENAME


@dataclass
class EventRecord:
    """A single event recording a change to a dependency."""

    event_type: str  # "added", "removed", "resolved", "ignored", "reactivated"
    dependency_id: str
    source_id: str
    target_id: str
    timestamp: str  # ISO-8601
    by: str | None = None
    message: str | None = None


def _serialize(event: EventRecord) -> dict[str, Any]:
    """Serialize an EventRecord to a dict for JSONL storage."""
    data: dict[str, Any] = {
        "record_type": "event",
        "depcat_version": _depcat_version,
        "event_type": event.event_type,
        "dependency_id": event.dependency_id,
        "source_id": event.source_id,
        "target_id": event.target_id,
        "timestamp": event.timestamp,
        "by": event.by,
    }
    if event.message is not None:
        data["message"] = event.message
    return data


def _deserialize(data: dict[str, Any]) -> EventRecord:
    """Deserialize a dict from JSONL into an EventRecord."""
    return EventRecord(
        event_type=data["event_type"],
        dependency_id=data["dependency_id"],
        source_id=data["source_id"],
        target_id=data["target_id"],
        timestamp=data["timestamp"],
        by=data.get("by"),
        message=data.get("message"),
    )


class EventLog:
    """Append-only event log stored alongside dependencies."""

    def __init__(self, depcat_dir: str | Path) -> None:
        self.depcat_dir = Path(depcat_dir)
        self.path = self.depcat_dir / STORAGE_FILENAME
        self._lock_path = self.depcat_dir / LOCK_FILENAME

    def append(self, event: EventRecord) -> None:
        """Append a single event record."""
        data = _serialize(event)
        with self._file_lock(), self.path.open("ab") as f:
            f.write(orjson.dumps(data))
            f.write(b"\n")
            f.flush()

    def read(
        self,
        *,
        item_id: str | None = None,
        limit: int | None = None,
    ) -> list[EventRecord]:
        """Read events in reverse chronological order (newest first).

        Args:
            item_id: Only keep events whose dependency ID, source or target
                matches this ID.
            limit: Maximum number of events to return.

        Returns:
            List of EventRecord, newest first.
        """
        if not self.path.exists():
            return []

        events: list[EventRecord] = []
        with self.path.open("rb") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = orjson.loads(line)
                except orjson.JSONDecodeError:
                    continue  # Storage reports corrupt lines; history skips them
                if data.get("record_type") != "event":
                    continue
                record = _deserialize(data)
                if item_id is not None and item_id not in (
                    record.dependency_id,
                    record.source_id,
                    record.target_id,
                ):
                    continue
                events.append(record)

        # Reverse for newest-first
        events.reverse()

        if limit is not None:
            events = events[:limit]

        return events

    def _file_lock(self) -> _FileLock:
        """Create an advisory file lock context manager."""
        return _FileLock(self._lock_path)


class _FileLock:
    """Advisory file lock using fcntl."""

    def __init__(self, lock_path: Path) -> None:
        self._lock_path = lock_path
        self._fd: Any = None

    def __enter__(self) -> Self:
        self._fd = self._lock_path.open("w")
        fcntl.flock(self._fd, fcntl.LOCK_EX)
        return self

    def __exit__(self, *_args: object) -> None:
        if self._fd:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
            self._fd.close()
