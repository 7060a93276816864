"""Persisted process-wide auto-sync configuration."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from pydantic import ValidationError

from src.campaign_sync.autosync.logs import SyncLog
from src.campaign_sync.autosync.schemas import AutoSyncConfig, LogLevel
from src.campaign_sync.core.storage import AUTO_SYNC_CONFIG_KEY, KeyValueStore

logger = structlog.get_logger(__name__)


class AutoSyncSettingsStore:
    """Holds the AutoSyncConfig and writes it through on every change.

    Stored values are merged over the defaults on load, so keys added in
    later releases pick up their defaults.

    Temporary overrides live beside the stored configuration. ``current``
    applies them; ``get``, ``update`` and persistence never see them.
    """

    def __init__(self, store: KeyValueStore, sync_log: SyncLog) -> None:
        self._store = store
        self._sync_log = sync_log
        self._config = AutoSyncConfig()
        self._overrides: dict[str, Any] = {}

    @property
    def current(self) -> AutoSyncConfig:
        """The effective configuration, overrides included. Do not mutate."""
        if not self._overrides:
            return self._config
        return self._config.model_copy(update=self._overrides)

    def get(self) -> AutoSyncConfig:
        """Copy of the stored configuration."""
        return self._config.model_copy()

    async def load(self) -> None:
        try:
            raw = await self._store.get(AUTO_SYNC_CONFIG_KEY)
            if raw:
                self._config = AutoSyncConfig.model_validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.error("auto_sync_config.load_failed", error=str(exc))
            self._config = AutoSyncConfig()

    async def _save(self) -> None:
        try:
            await self._store.set(AUTO_SYNC_CONFIG_KEY, self._config.model_dump_json())
        except Exception as exc:
            logger.error("auto_sync_config.save_failed", error=str(exc))

    async def update(self, **changes: Any) -> AutoSyncConfig:
        """Merge changes into the stored configuration and persist it.

        Raises:
            ValueError: If a key is not an AutoSyncConfig field, or a value
                does not validate.
        """
        unknown = set(changes) - set(AutoSyncConfig.model_fields)
        if unknown:
            raise ValueError(f"Unknown auto-sync setting(s): {', '.join(sorted(unknown))}")

        self._config = AutoSyncConfig.model_validate({**self._config.model_dump(), **changes})
        await self._save()
        await self._sync_log.log(
            LogLevel.INFO, "Auto-sync configuration updated", {"updates": changes}
        )
        return self.get()

    async def reset(self) -> AutoSyncConfig:
        self._config = AutoSyncConfig()
        await self._save()
        await self._sync_log.log(LogLevel.INFO, "Auto-sync configuration reset to defaults")
        return self.get()

    @contextmanager
    def temporary(self, **changes: Any) -> Iterator[AutoSyncConfig]:
        """Override settings in memory for the duration of the block.

        Raises:
            ValueError: If a key is not an AutoSyncConfig field.
        """
        unknown = set(changes) - set(AutoSyncConfig.model_fields)
        if unknown:
            raise ValueError(f"Unknown auto-sync setting(s): {', '.join(sorted(unknown))}")

        previous = dict(self._overrides)
        self._overrides = {**previous, **changes}
        try:
            yield self.current
        finally:
            self._overrides = previous
