"""Sync audit log -- capped ring buffer with a persisted trailing slice.

Entries are observational only; nothing in the sync path reads them back to
decide what to do. Each entry is also emitted through structlog at the
matching level so it shows up in the process logs.
"""

from __future__ import annotations

import itertools
from collections import deque
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from src.campaign_sync.autosync.schemas import LogLevel, SyncLogEntry
from src.campaign_sync.core.storage import SYNC_LOGS_KEY, KeyValueStore

logger = structlog.get_logger(__name__)

_entries_adapter = TypeAdapter(list[SyncLogEntry])

_STRUCTLOG_METHODS = {
    LogLevel.INFO: "info",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
    LogLevel.DEBUG: "debug",
}


class SyncLog:
    """Append-only log of sync events.

    Args:
        store: Key-value store for the trailing slice.
        max_entries: In-memory cap. Oldest entries are evicted first.
        persisted_entries: How many of the newest entries are persisted.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_entries: int = 1000,
        persisted_entries: int = 100,
    ) -> None:
        self._store = store
        self._max_entries = max_entries
        self._persisted_entries = min(persisted_entries, max_entries)
        self._entries: deque[SyncLogEntry] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    async def load(self) -> None:
        """Restore the persisted slice. Corrupt data leaves the log empty."""
        self._entries.clear()
        try:
            raw = await self._store.get(SYNC_LOGS_KEY)
            if raw:
                self._entries.extend(_entries_adapter.validate_json(raw))
        except (ValidationError, ValueError) as exc:
            logger.error("sync_log.load_failed", error=str(exc))
            self._entries.clear()

    async def _save(self) -> None:
        start = max(len(self._entries) - self._persisted_entries, 0)
        trailing = list(itertools.islice(self._entries, start, None))
        try:
            await self._store.set(SYNC_LOGS_KEY, _entries_adapter.dump_json(trailing).decode())
        except Exception as exc:
            logger.error("sync_log.save_failed", error=str(exc))

    async def log(
        self,
        level: LogLevel,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | str | None = None,
    ) -> SyncLogEntry:
        entry = SyncLogEntry(
            level=level,
            message=message,
            context=context,
            error=str(error) if error is not None else None,
        )
        self._entries.append(entry)
        await self._save()

        emit = getattr(logger, _STRUCTLOG_METHODS[level])
        emit("sync_log.entry", message=message, context=context, error=entry.error)
        return entry

    def get_logs(self, limit: int | None = None) -> list[SyncLogEntry]:
        """Return entries newest first, optionally only the first ``limit``."""
        ordered = list(reversed(self._entries))
        return ordered[:limit] if limit else ordered

    async def clear(self) -> None:
        self._entries.clear()
        await self._save()
        await self.log(LogLevel.INFO, "Sync logs cleared")
