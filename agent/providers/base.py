"""
Statsd Agent - Base Metrics Source Interface

A metrics source reads one group of host counters. Sources are sampled once
per poll cycle by the ProviderManager; a source that cannot be read raises
SourceUnavailable and its counters are left out of that cycle.
"""

from abc import ABC, abstractmethod
from typing import Dict

from telemetry.errors import SourceUnavailable


class MetricsSource(ABC):
    """Base class for all host metrics sources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name (e.g., 'sessions', 'core_db')."""
        pass

    async def start(self) -> None:
        """Initialize the source. Override if the source holds resources."""

    async def stop(self) -> None:
        """Release source resources. Override if the source holds resources."""

    @abstractmethod
    async def sample(self) -> Dict[str, int]:
        """Return the current counter values keyed by metric name.

        Raises:
            SourceUnavailable: the backing data cannot be read right now.
        """
        pass


__all__ = ["MetricsSource", "SourceUnavailable"]
