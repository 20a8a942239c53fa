"""
Statsd Agent - Errors

Failure modes of the metrics pipeline. None of these may reach the host
application: each one degrades to "skip this metric or cycle" at worst.
"""


class StatsdError(Exception):
    """Base class for statsd agent errors."""


class ConfigError(StatsdError):
    """Malformed or missing setting. The default is substituted."""


class StatsdConnectionError(StatsdError, ConnectionError):
    """Address resolution or socket creation failed at connect time."""


class SourceUnavailable(StatsdError):
    """A metrics source cannot be read this cycle."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        super().__init__(f"{source} unavailable: {reason}" if reason else f"{source} unavailable")


class TransmissionError(StatsdError):
    """A datagram could not be handed to the OS."""
