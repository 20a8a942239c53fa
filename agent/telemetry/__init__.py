"""
Statsd Agent - Telemetry Package

Statsd client and the poller that feeds it. The embeddable lifecycle lives in
telemetry.module.
"""

from .errors import (
    ConfigError,
    SourceUnavailable,
    StatsdConnectionError,
    StatsdError,
    TransmissionError,
)
from .statsd_client import Connection, Metric, MetricKind, StatsdClient
from .poller import MetricsPoller, PollerState

__all__ = [
    "StatsdClient",
    "Connection",
    "Metric",
    "MetricKind",
    "MetricsPoller",
    "PollerState",
    "StatsdError",
    "ConfigError",
    "StatsdConnectionError",
    "SourceUnavailable",
    "TransmissionError",
]
