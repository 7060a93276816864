"""Tests for the persisted auto-sync configuration."""

from __future__ import annotations

import json

import pytest

from src.campaign_sync.autosync.schemas import AutoSyncConfig
from src.campaign_sync.autosync.settings_store import AutoSyncSettingsStore
from src.campaign_sync.core.storage import AUTO_SYNC_CONFIG_KEY, InMemoryKeyValueStore


class TestAutoSyncSettingsStore:
    def test_defaults(self, settings_store):
        config = settings_store.get()

        assert config == AutoSyncConfig()
        assert config.enabled is True
        assert config.sync_on_update is False
        assert config.retry_attempts == 3
        assert config.retry_delay == 1000
        assert config.batch_size == 10

    async def test_update_persists_and_logs(self, store, settings_store, sync_log):
        config = await settings_store.update(batch_size=5, include_competitor_analysis=False)

        assert config.batch_size == 5
        assert json.loads(await store.get(AUTO_SYNC_CONFIG_KEY))["batch_size"] == 5
        latest = sync_log.get_logs(1)[0]
        assert latest.message == "Auto-sync configuration updated"
        assert latest.context == {"updates": {"batch_size": 5, "include_competitor_analysis": False}}

    async def test_update_unknown_key_raises(self, settings_store):
        with pytest.raises(ValueError, match="Unknown auto-sync setting"):
            await settings_store.update(sync_everything=True)

    async def test_get_returns_copy(self, settings_store):
        copy = settings_store.get()
        copy.enabled = False

        assert settings_store.current.enabled is True

    async def test_reset_restores_defaults(self, settings_store, sync_log):
        await settings_store.update(enabled=False, retry_attempts=0)

        config = await settings_store.reset()

        assert config == AutoSyncConfig()
        assert sync_log.get_logs(1)[0].message == "Auto-sync configuration reset to defaults"

    async def test_partial_stored_config_merges_over_defaults(self, sync_log):
        store = InMemoryKeyValueStore({AUTO_SYNC_CONFIG_KEY: '{"enabled": false}'})
        settings_store = AutoSyncSettingsStore(store, sync_log)

        await settings_store.load()

        assert settings_store.current.enabled is False
        assert settings_store.current.batch_size == 10

    async def test_corrupt_stored_config_falls_back_to_defaults(self, sync_log):
        store = InMemoryKeyValueStore({AUTO_SYNC_CONFIG_KEY: '{"retry_attempts": "many"}'})
        settings_store = AutoSyncSettingsStore(store, sync_log)

        await settings_store.load()

        assert settings_store.current == AutoSyncConfig()

    def test_temporary_restores_on_exception(self, settings_store):
        settings_store.current.sync_on_generation = False

        with pytest.raises(RuntimeError):
            with settings_store.temporary(sync_on_generation=True) as config:
                assert config.sync_on_generation is True
                raise RuntimeError("boom")

        assert settings_store.current.sync_on_generation is False

    async def test_temporary_override_is_never_persisted(self, store, settings_store, sync_log):
        await settings_store.update(sync_on_generation=False)

        with settings_store.temporary(sync_on_generation=True):
            assert settings_store.current.sync_on_generation is True
            assert settings_store.get().sync_on_generation is False
            updated = await settings_store.update(batch_size=5)
            assert updated.sync_on_generation is False

        reloaded = AutoSyncSettingsStore(store, sync_log)
        await reloaded.load()

        assert reloaded.current.sync_on_generation is False
        assert reloaded.current.batch_size == 5
        assert settings_store.current.batch_size == 5

    def test_temporary_rejects_unknown_key(self, settings_store):
        with pytest.raises(ValueError, match="Unknown auto-sync setting"):
            with settings_store.temporary(turbo=True):
                pass
