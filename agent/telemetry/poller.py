"""
Statsd Agent - Metrics Poller

Samples the host counters once per interval and sends each one as a gauge.

Shutdown drains the in-flight cycle and then stops: the stop request and the
read-and-send cycle are serialized by one lock, so once stop() has recorded
the request no further metric is sent. The wait between cycles happens
outside the lock and is interrupted by the stop request.
"""

import asyncio
from enum import Enum
from typing import Dict, Optional, Protocol, Union

import structlog

from .errors import SourceUnavailable
from .statsd_client import StatsdClient

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL = 1.0


class HostMetricsProvider(Protocol):
    async def sample_counters(self) -> Dict[str, Union[int, float]]:
        ...


class PollerState(str, Enum):
    """Poller lifecycle. No transitions out of TERMINATED."""
    CREATED = "created"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class MetricsPoller:
    """Single background task driving the sample-and-send cycle."""

    def __init__(
        self,
        client: Optional[StatsdClient],
        provider: HostMetricsProvider,
        interval: float = DEFAULT_INTERVAL
    ):
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive: {interval}")

        self._client = client
        self._provider = provider
        self._interval = interval

        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._state = PollerState.CREATED

        self.cycles = 0

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == PollerState.RUNNING

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def client(self) -> Optional[StatsdClient]:
        return self._client

    async def start(self) -> None:
        """Start the poll loop task."""
        if self._state != PollerState.CREATED:
            logger.warning("Poller cannot be started again", state=self._state.value)
            return

        self._state = PollerState.RUNNING
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Metrics poller started", interval=self._interval)

    async def stop(self) -> None:
        """Request shutdown, wait for the loop to exit and release the client."""
        async with self._lock:
            if not self._stop_event.is_set():
                self._stop_event.set()
                if self._state == PollerState.RUNNING:
                    self._state = PollerState.SHUTTING_DOWN
                logger.debug("Poller stop requested")

        try:
            if self._task:
                await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
            logger.warning("Poll loop was cancelled before stop")
        finally:
            await self._terminate()

    async def _terminate(self) -> None:
        async with self._lock:
            if self._state == PollerState.TERMINATED:
                return
            if self._client:
                self._client.finalize()
            self._state = PollerState.TERMINATED
            logger.info("Metrics poller stopped", cycles=self.cycles)

    async def poll_once(self) -> int:
        """Run a single cycle now. Returns the number of gauges sent."""
        async with self._lock:
            if self._stop_event.is_set():
                return 0
            return await self._cycle()

    async def _poll_loop(self) -> None:
        """Main poll loop."""
        try:
            while True:
                async with self._lock:
                    if self._stop_event.is_set():
                        break
                    await self._cycle()

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            logger.debug("Poll loop is done", cycles=self.cycles)

    async def _cycle(self) -> int:
        """Sample and send. Caller holds the lock."""
        self.cycles += 1
        logger.debug("Polling for metrics", cycle=self.cycles)

        try:
            counters = await self._provider.sample_counters()
        except SourceUnavailable as e:
            logger.debug("Metrics unavailable, skipping cycle", error=str(e))
            return 0
        except Exception as e:
            logger.exception("Metrics poll failed", error=str(e))
            return 0

        if self._client is None:
            logger.debug("No statsd client, skipping send", counters=len(counters))
            return 0

        sent = 0
        for name, value in counters.items():
            if value is None:
                continue
            self._client.gauge(name, value)
            sent += 1
        return sent
