"""
Statsd Agent - Statsd Client

Encodes metric samples into the statsd line format and sends them as UDP
datagrams, one metric per datagram:

    <namespace.><name>:<value>|<g|c|ms>[|@<sample_rate>]

Transmission is fire-and-forget. A failed send is counted and logged, never
raised or retried.
"""

import math
import random
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import structlog

from .errors import StatsdConnectionError, TransmissionError

logger = structlog.get_logger(__name__)

Number = Union[int, float]

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8125

# Characters that would break the line format
RESERVED_CHARS = frozenset(":|@\n")


def check_name(name: str, what: str = "metric name") -> None:
    """Raise ValueError unless name is non-empty ASCII without delimiters."""
    if not name or not name.isascii() or RESERVED_CHARS.intersection(name):
        raise ValueError(f"Invalid {what}: {name!r}")


class MetricKind(str, Enum):
    """Statsd metric type and its wire suffix."""
    GAUGE = "g"
    COUNTER = "c"
    TIMING = "ms"


def format_value(value: Number) -> str:
    """Render a numeric value the way collectors parse it."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


@dataclass(frozen=True)
class Connection:
    """Collector address and optional namespace. Immutable once created."""
    host: str
    port: int
    namespace: Optional[str] = None


@dataclass(frozen=True)
class Metric:
    """A single sample, encoded and discarded within one send."""
    name: str
    value: Number
    kind: MetricKind
    sample_rate: Optional[float] = None

    def encode(self, namespace: Optional[str] = None) -> str:
        """Build the wire line. Raises ValueError for unencodable metrics."""
        check_name(self.name)
        if namespace:
            check_name(namespace, "namespace")
        if not isinstance(self.value, (int, float)):
            raise ValueError(f"Metric value must be a number: {self.value!r}")
        if not math.isfinite(self.value):
            raise ValueError(f"Metric value must be finite: {self.value!r}")

        name = f"{namespace}.{self.name}" if namespace else self.name
        line = f"{name}:{format_value(self.value)}|{self.kind.value}"

        if self.sample_rate is not None:
            if not 0 < self.sample_rate <= 1:
                raise ValueError(f"Sample rate out of range: {self.sample_rate}")
            if self.sample_rate < 1:
                line += f"|@{format_value(self.sample_rate)}"

        return line


class StatsdClient:
    """UDP statsd client bound to a single collector."""

    def __init__(self, connection: Connection, sock: socket.socket):
        self.connection = connection
        self._sock: Optional[socket.socket] = sock

        self.sent = 0
        self.dropped = 0
        self.send_errors = 0

    @classmethod
    def connect(
        cls,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        namespace: Optional[str] = None
    ) -> "StatsdClient":
        """Resolve the collector address and open a connected UDP socket.

        Resolution or socket creation failures raise StatsdConnectionError,
        a namespace that cannot be encoded raises ValueError. Whether a
        collector is actually listening is not checked.
        """
        if namespace:
            check_name(namespace, "namespace")

        try:
            family, socktype, proto, _, addr = socket.getaddrinfo(
                host, port, type=socket.SOCK_DGRAM
            )[0]
        except OSError as e:
            raise StatsdConnectionError(f"Cannot resolve {host}:{port}: {e}") from e

        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as e:
            raise StatsdConnectionError(f"Cannot create UDP socket: {e}") from e

        try:
            sock.setblocking(False)
            # Fixes the peer so send() skips resolution; no packets leave here
            sock.connect(addr)
        except OSError as e:
            sock.close()
            raise StatsdConnectionError(f"Cannot connect UDP socket to {host}:{port}: {e}") from e

        connection = Connection(host=host, port=port, namespace=namespace or None)
        logger.debug("Statsd socket ready", host=host, port=port, namespace=connection.namespace)
        return cls(connection, sock)

    @property
    def is_closed(self) -> bool:
        return self._sock is None

    def gauge(self, name: str, value: Number, sample_rate: Optional[float] = None) -> None:
        """Send an absolute value."""
        self.send(Metric(name, value, MetricKind.GAUGE, sample_rate))

    def counter(self, name: str, delta: Number = 1, sample_rate: Optional[float] = None) -> None:
        """Send a counter delta."""
        self.send(Metric(name, delta, MetricKind.COUNTER, sample_rate))

    def timing(self, name: str, milliseconds: Number, sample_rate: Optional[float] = None) -> None:
        """Send a duration in milliseconds."""
        self.send(Metric(name, milliseconds, MetricKind.TIMING, sample_rate))

    def send(self, metric: Metric) -> None:
        """Encode and transmit one metric. Never raises."""
        if self._sock is None:
            self.dropped += 1
            logger.debug("Send after finalize ignored", metric=metric.name)
            return

        try:
            line = metric.encode(self.connection.namespace)
        except ValueError as e:
            self.dropped += 1
            logger.warning("Dropping invalid metric", metric=metric.name, error=str(e))
            return

        if metric.sample_rate is not None and metric.sample_rate < 1:
            if random.random() >= metric.sample_rate:
                return

        try:
            self._transmit(line.encode("ascii"))
        except TransmissionError as e:
            self.send_errors += 1
            logger.debug("Metric send failed", metric=metric.name, error=str(e))

    def _transmit(self, data: bytes) -> None:
        try:
            self._sock.send(data)
        except OSError as e:
            raise TransmissionError(str(e)) from e
        self.sent += 1

    def finalize(self) -> None:
        """Release the socket. Safe to call more than once."""
        if self._sock is None:
            return

        sock, self._sock = self._sock, None
        try:
            sock.close()
        except OSError as e:
            logger.debug("Error closing statsd socket", error=str(e))

        logger.debug(
            "Statsd client finalized",
            sent=self.sent,
            dropped=self.dropped,
            send_errors=self.send_errors
        )

    def __enter__(self) -> "StatsdClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finalize()
