"""Connection registry -- CRUD over configured CRM connections with persistence.

The whole connection list is serialized to one key on every mutation.
Adapters are created through an injected factory and cached per connection
id until the connection is deleted.

A connection is usable for automatic sync when ``is_active`` is set and its
status is ``connected``. Several connections may qualify; the earliest
registered one wins.
"""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from src.campaign_sync.core.storage import CONNECTIONS_KEY, KeyValueStore
from src.campaign_sync.crm.adapter import CRMAdapter
from src.campaign_sync.crm.factory import AdapterFactory, create_adapter
from src.campaign_sync.crm.schemas import (
    ConnectionStatus,
    CRMConfiguration,
    CRMConnection,
)

logger = structlog.get_logger(__name__)

_connections_adapter = TypeAdapter(list[CRMConnection])
_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_connection_id() -> str:
    """Timestamp plus random base36 suffix, e.g. ``crm_1700000000000_k3j9x0a1b``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"crm_{int(time.time() * 1000)}_{suffix}"


class ConnectionRegistry:
    """Persisted collection of CRM connections.

    Args:
        store: Key-value store holding the serialized connection list.
        adapter_factory: Builds the adapter for a connection. Defaults to
            the provider-tag factory.
    """

    def __init__(
        self,
        store: KeyValueStore,
        adapter_factory: AdapterFactory = create_adapter,
    ) -> None:
        self._store = store
        self._adapter_factory = adapter_factory
        self._connections: list[CRMConnection] = []
        self._adapters: dict[str, CRMAdapter] = {}

    # ── Persistence ─────────────────────────────────────────────────────

    async def load(self) -> None:
        """Load connections from the store.

        Unreadable data resets the registry to empty instead of raising.
        """
        try:
            raw = await self._store.get(CONNECTIONS_KEY)
            self._connections = _connections_adapter.validate_json(raw) if raw else []
        except (ValidationError, ValueError) as exc:
            logger.error("crm_registry.load_failed", error=str(exc))
            self._connections = []
        self._adapters.clear()
        logger.info("crm_registry.loaded", count=len(self._connections))

    async def _save(self) -> None:
        try:
            payload = _connections_adapter.dump_json(self._connections).decode()
            await self._store.set(CONNECTIONS_KEY, payload)
        except Exception as exc:
            logger.error("crm_registry.save_failed", error=str(exc))

    # ── Queries ─────────────────────────────────────────────────────────

    def get_connections(self) -> list[CRMConnection]:
        """Return a copy of every connection in registration order."""
        return [conn.model_copy(deep=True) for conn in self._connections]

    def get_connection(self, connection_id: str) -> CRMConnection | None:
        for conn in self._connections:
            if conn.id == connection_id:
                return conn.model_copy(deep=True)
        return None

    def get_active_connection(self) -> CRMConnection | None:
        """First connection that is active and connected, or None."""
        for conn in self._connections:
            if conn.is_usable:
                return conn.model_copy(deep=True)
        return None

    def get_adapter(self, connection: CRMConnection) -> CRMAdapter:
        """Return the cached adapter for a connection, creating it if needed."""
        adapter = self._adapters.get(connection.id)
        if adapter is None:
            adapter = self._adapter_factory(connection)
            self._adapters[connection.id] = adapter
        return adapter

    # ── Mutations ───────────────────────────────────────────────────────

    async def _probe(self, connection: CRMConnection) -> dict[str, Any]:
        """Test connectivity and return the status fields to apply."""
        adapter = self.get_adapter(connection)

        if not adapter.supported:
            return {
                "is_active": False,
                "sync_status": ConnectionStatus.ERROR,
                "error_message": f"{connection.provider.value} integration not implemented",
            }

        try:
            is_connected = await adapter.test_connection()
        except Exception as exc:
            logger.warning(
                "crm_registry.connection_test_failed",
                connection_id=connection.id,
                provider=connection.provider.value,
                error=str(exc),
            )
            return {
                "sync_status": ConnectionStatus.ERROR,
                "error_message": str(exc) or exc.__class__.__name__,
            }

        if is_connected:
            return {
                "is_active": True,
                "sync_status": ConnectionStatus.CONNECTED,
                "error_message": None,
            }
        return {"sync_status": ConnectionStatus.DISCONNECTED}

    async def add_connection(
        self,
        config: CRMConfiguration,
        name: str | None = None,
    ) -> CRMConnection:
        """Register a connection and test it.

        A failed test is recorded on the connection (status ``error`` with
        message) and never raised; the connection is always stored.
        """
        now = datetime.now(timezone.utc)
        connection = CRMConnection(
            id=generate_connection_id(),
            provider=config.provider,
            name=name or f"{config.provider.value} Connection",
            configuration=config,
            is_active=False,
            sync_status=ConnectionStatus.DISCONNECTED,
            created_at=now,
            updated_at=now,
        )

        status_fields = await self._probe(connection)
        connection = connection.model_copy(update=status_fields)

        self._connections.append(connection)
        await self._save()

        logger.info(
            "crm_registry.connection_added",
            connection_id=connection.id,
            provider=connection.provider.value,
            sync_status=connection.sync_status.value,
        )
        return connection.model_copy(deep=True)

    async def update_connection(
        self,
        connection_id: str,
        updates: dict[str, Any],
    ) -> CRMConnection | None:
        """Merge updates into a connection. Returns None if the id is unknown."""
        for index, conn in enumerate(self._connections):
            if conn.id != connection_id:
                continue

            merged = conn.model_dump()
            merged.update({k: v for k, v in updates.items() if k not in ("id", "created_at")})
            merged["updated_at"] = datetime.now(timezone.utc)
            updated = CRMConnection.model_validate(merged)

            if updated.configuration != conn.configuration:
                self._adapters.pop(connection_id, None)

            self._connections[index] = updated
            await self._save()

            logger.info(
                "crm_registry.connection_updated",
                connection_id=connection_id,
                fields=sorted(updates.keys()),
            )
            return updated.model_copy(deep=True)

        return None

    async def delete_connection(self, connection_id: str) -> bool:
        """Remove a connection and its cached adapter. Returns True if removed."""
        initial_length = len(self._connections)
        self._connections = [conn for conn in self._connections if conn.id != connection_id]
        self._adapters.pop(connection_id, None)

        if len(self._connections) == initial_length:
            return False

        await self._save()
        logger.info("crm_registry.connection_deleted", connection_id=connection_id)
        return True

    async def test_connection(self, connection_id: str) -> CRMConnection | None:
        """Re-test a stored connection and record the outcome."""
        connection = self.get_connection(connection_id)
        if connection is None:
            return None
        status_fields = await self._probe(connection)
        return await self.update_connection(connection_id, status_fields)

    async def toggle_connection(self, connection_id: str) -> CRMConnection | None:
        """Flip ``is_active`` on a connection."""
        connection = self.get_connection(connection_id)
        if connection is None:
            return None
        return await self.update_connection(connection_id, {"is_active": not connection.is_active})

    async def update_sync_status(
        self,
        connection_id: str,
        status: ConnectionStatus,
        error_message: str | None = None,
    ) -> CRMConnection | None:
        """Record the outcome of a sync attempt and stamp ``last_sync``."""
        return await self.update_connection(
            connection_id,
            {
                "sync_status": status,
                "last_sync": datetime.now(timezone.utc),
                "error_message": error_message,
            },
        )
