"""
Statsd Agent - Provider Manager

Combines the configured metrics sources into the single counter mapping the
poller sends each cycle. A source that is unavailable is left out of that
cycle; the others are still reported.
"""

from typing import Dict, List, Optional

import structlog

from .base import MetricsSource, SourceUnavailable

logger = structlog.get_logger(__name__)


class ProviderManager:
    """Host metrics provider backed by a list of sources."""

    def __init__(self, sources: Optional[List[MetricsSource]] = None):
        self._sources: List[MetricsSource] = []
        self._available: Dict[str, bool] = {}
        for source in sources or []:
            self.register(source)

    @property
    def sources(self) -> List[MetricsSource]:
        return list(self._sources)

    @property
    def is_healthy(self) -> bool:
        """True when the last sample of every source succeeded."""
        if not self._sources:
            return False
        return all(self._available.values())

    def register(self, source: MetricsSource) -> None:
        """Add a source. Sources are sampled in registration order."""
        if any(s.name == source.name for s in self._sources):
            raise ValueError(f"Source already registered: {source.name}")
        self._sources.append(source)
        self._available[source.name] = True
        logger.debug("Registered metrics source", source=source.name)

    def get_source(self, name: str) -> Optional[MetricsSource]:
        for source in self._sources:
            if source.name == name:
                return source
        return None

    async def start(self) -> None:
        """Start all sources."""
        logger.info("Starting metrics sources", sources=[s.name for s in self._sources])

        for source in self._sources:
            try:
                await source.start()
            except Exception as e:
                logger.exception("Failed to start metrics source", source=source.name, error=str(e))

    async def stop(self) -> None:
        """Stop all sources."""
        for source in self._sources:
            try:
                await source.stop()
            except Exception as e:
                logger.exception("Error stopping metrics source", source=source.name, error=str(e))

    async def sample_counters(self) -> Dict[str, int]:
        """Sample every source, skipping the ones that cannot be read."""
        counters: Dict[str, int] = {}

        for source in self._sources:
            try:
                values = await source.sample()
            except SourceUnavailable as e:
                self._mark(source.name, False, reason=e.reason)
                continue
            except Exception as e:
                self._mark(source.name, False)
                logger.exception("Metrics source failed", source=source.name, error=str(e))
                continue

            self._mark(source.name, True)
            counters.update(values)

        return counters

    def health(self) -> Dict[str, bool]:
        return dict(self._available)

    def _mark(self, name: str, available: bool, reason: str = "") -> None:
        was_available = self._available.get(name, True)
        self._available[name] = available

        if available and not was_available:
            logger.info("Metrics source recovered", source=name)
        elif not available and was_available:
            logger.warning("Metrics source unavailable, skipping its counters", source=name, reason=reason)
        elif not available:
            logger.debug("Metrics source still unavailable", source=name, reason=reason)
