"""
Statsd Agent - Providers Package

Metrics sources sampled by the poller each cycle:
- SessionTracker: live session counts and creation rates fed by the host
- CoreDbSource: per-host call, channel and registration counts from SQLite
"""

from .manager import ProviderManager
from .base import MetricsSource
from .sessions import SessionTracker
from .database import CoreDbSource

__all__ = [
    "ProviderManager",
    "MetricsSource",
    "SessionTracker",
    "CoreDbSource",
]
