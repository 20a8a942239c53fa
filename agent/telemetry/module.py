"""
Statsd Agent - Module Lifecycle

StatsdModule is the piece a host application embeds: start(config) wires the
metrics sources, statsd client and poller together; stop() tears them down.
"""

from typing import Any, Dict, List, Optional

import structlog

from providers.base import MetricsSource
from providers.database import CoreDbSource
from providers.manager import ProviderManager
from providers.sessions import SessionTracker

from .config import AgentConfig
from .errors import StatsdConnectionError
from .poller import MetricsPoller
from .statsd_client import StatsdClient

logger = structlog.get_logger(__name__)


class StatsdModule:
    """Statsd reporting for one host process."""

    def __init__(self, sessions: Optional[SessionTracker] = None):
        self._sessions = sessions or SessionTracker()
        self._config: Optional[AgentConfig] = None
        self._manager: Optional[ProviderManager] = None
        self._client: Optional[StatsdClient] = None
        self._poller: Optional[MetricsPoller] = None

    @property
    def sessions(self) -> SessionTracker:
        return self._sessions

    @property
    def poller(self) -> Optional[MetricsPoller]:
        return self._poller

    @property
    def is_running(self) -> bool:
        return self._poller is not None and self._poller.is_running

    def _build_sources(self, config: AgentConfig) -> List[MetricsSource]:
        sources: List[MetricsSource] = [self._sessions]
        if config.database.path:
            sources.append(CoreDbSource(config.database.path, hostname=config.database.hostname))
        else:
            logger.info("No core database configured, call and channel counts disabled")
        return sources

    async def start(self, config: AgentConfig) -> None:
        """Connect to the collector and start polling."""
        if self._poller is not None:
            logger.warning("Statsd module already started")
            return

        self._config = config
        settings = config.statsd

        self._manager = ProviderManager(self._build_sources(config))
        await self._manager.start()

        try:
            self._client = StatsdClient.connect(settings.host, settings.port, settings.namespace)
            if settings.namespace:
                logger.info(
                    "Sending stats",
                    host=settings.host,
                    port=settings.port,
                    namespace=settings.namespace
                )
            else:
                logger.info("Sending stats", host=settings.host, port=settings.port)
        except StatsdConnectionError as e:
            # Poller runs without a client and skips sending
            self._client = None
            logger.error("Statsd client unavailable, metrics will not be sent", error=str(e))

        self._poller = MetricsPoller(self._client, self._manager, interval=settings.interval)
        await self._poller.start()

    async def stop(self) -> None:
        """Stop polling and release the socket. Safe to call more than once."""
        if self._poller is not None:
            await self._poller.stop()
        if self._manager is not None:
            await self._manager.stop()

    def status(self) -> Dict[str, Any]:
        """Snapshot of the module state for health reporting."""
        client = self._client
        return {
            "state": self._poller.state.value if self._poller else "created",
            "cycles": self._poller.cycles if self._poller else 0,
            "connected": client is not None and not client.is_closed,
            "collector": f"{client.connection.host}:{client.connection.port}" if client else None,
            "namespace": client.connection.namespace if client else None,
            "sent": client.sent if client else 0,
            "dropped": client.dropped if client else 0,
            "send_errors": client.send_errors if client else 0,
            "sources": self._manager.health() if self._manager else {},
        }
