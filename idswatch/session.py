"""MonitorSession — owns the core services for one monitoring session.

Each service is constructed once here and injected into its consumers;
nothing in the core is a module-level singleton.

Inbound path for one alert:
    channel → AlertBuffer.append → NotificationEngine.dispatch
The buffer mutation happens before any consumer sees the alert.
"""

from __future__ import annotations

import logging
from typing import Any

from idswatch.contracts.alert import Alert
from idswatch.contracts.enums import Permission
from idswatch.core.annotations import AnnotationStore
from idswatch.core.buffer import AlertBuffer
from idswatch.core.connection import ConnectionManager, Connector
from idswatch.core.filters import FilterEngine
from idswatch.core.notifications import (
    LogNotificationBackend,
    NotificationBackend,
    NotificationEngine,
)
from idswatch.core.poller import StatsClient, StatsPoller
from idswatch.core.sampler import RateSampler
from idswatch.shared.settings import ClientConfig
from idswatch.shared.storage import JsonFileStorage, KeyValueStorage, MemoryStorage

log = logging.getLogger(__name__)


def build_storage(cfg: ClientConfig) -> KeyValueStorage:
    directory = cfg.storage.directory.strip()
    if not directory:
        log.info("No storage directory configured — state is kept in memory")
        return MemoryStorage()
    return JsonFileStorage(directory)


class MonitorSession:
    def __init__(
        self,
        config: ClientConfig,
        *,
        storage: KeyValueStorage | None = None,
        backend: NotificationBackend | None = None,
        connector: Connector | None = None,
        stats_client: StatsClient | None = None,
        poll_stats: bool = True,
    ) -> None:
        self.config = config
        self.storage = storage if storage is not None else build_storage(config)

        self.buffer = AlertBuffer(config.buffer.capacity)
        self.annotations = AnnotationStore(self.storage)
        self.notifications = NotificationEngine(
            backend or LogNotificationBackend(Permission(config.notifications.cli_permission)),
            self.storage,
            auto_dismiss_sec=config.notifications.auto_dismiss_sec,
        )
        self.sampler = RateSampler(
            config.history.max_points,
            normalize_elapsed=config.history.normalize_elapsed,
        )
        self.filters = FilterEngine(self.buffer, self.annotations, self.storage)
        self.connection = ConnectionManager(
            config.channel.url,
            self._on_alert,
            reconnect_delay=config.channel.reconnect_delay_sec,
            connector=connector,
        )
        self.poller: StatsPoller | None = None
        if poll_stats:
            client = stats_client or StatsClient(
                config.api.base_url, timeout=config.api.timeout_sec
            )
            self.poller = StatsPoller(client, self.sampler, config.api.poll_interval_sec)
        self._started = False

    def _on_alert(self, alert: Alert) -> None:
        self.buffer.append(alert)
        log.info("Alert %s %s from %s", alert.severity.value, alert.threat_type, alert.source_ip)
        self.notifications.dispatch(alert)

    # ── lifecycle ────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Connect the channel and start polling. Must run inside the loop."""
        if self._started:
            return
        self._started = True
        self.connection.connect()
        if self.poller is not None:
            self.poller.start()
        log.info("Monitoring session started")

    async def shutdown(self) -> None:
        """Stop everything started by :meth:`start`. Idempotent."""
        await self.connection.wait_closed()
        if self.poller is not None:
            await self.poller.close()
        self.notifications.shutdown()
        if self._started:
            log.info("Monitoring session stopped")
        self._started = False

    def stop_monitoring(self) -> None:
        """Forget buffered alerts and history (backend capture stopped)."""
        self.buffer.clear()
        self.sampler.clear()

    def status(self) -> dict[str, Any]:
        return {
            "connected": self.connection.connected,
            "state": self.connection.state.value,
            "error": self.connection.error,
            "alerts_buffered": len(self.buffer),
            "history_points": len(self.sampler),
            "annotations": len(self.annotations),
            "connection": self.connection.stats.to_dict(),
        }
