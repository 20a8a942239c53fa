"""
Statsd Agent - Tests

End-to-end tests for the embeddable module over a real UDP socket.
"""

import asyncio
import socket
from unittest.mock import patch

import pytest

from telemetry.config import AgentConfig, DatabaseSettings, StatsdSettings
from telemetry.errors import StatsdConnectionError
from telemetry.module import StatsdModule
from telemetry.poller import MetricsPoller, PollerState
from telemetry.statsd_client import StatsdClient


@pytest.fixture
def collector():
    """Non-blocking UDP socket acting as the statsd collector."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.setblocking(False)
    yield sock
    sock.close()


async def receive(sock, timeout=2.0):
    loop = asyncio.get_running_loop()
    data = await asyncio.wait_for(loop.sock_recv(sock, 1024), timeout=timeout)
    return data.decode("ascii")


async def receive_all(sock, quiet=0.2):
    """Collect datagrams until the collector has been quiet for a while."""
    lines = []
    while True:
        try:
            lines.append(await receive(sock, timeout=quiet))
        except asyncio.TimeoutError:
            return lines


class SessionsProvider:
    async def sample_counters(self):
        return {"sessions_count": 5}


class TestEndToEnd:
    """Test the documented collector scenario."""

    @pytest.mark.asyncio
    async def test_single_datagram_within_interval(self):
        """Namespace fs and one counter give exactly fs.sessions_count:5|g."""
        collector = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        collector.bind(("127.0.0.1", 9999))
        collector.setblocking(False)
        try:
            client = StatsdClient.connect("127.0.0.1", 9999, "fs")
            poller = MetricsPoller(client, SessionsProvider(), interval=1.0)

            await poller.start()
            line = await receive(collector, timeout=1.0)
            await poller.stop()

            assert line == "fs.sessions_count:5|g"
            assert await receive_all(collector) == []
            assert client.is_closed
        finally:
            collector.close()


class TestStatsdModule:
    """Test the start(config) / stop() lifecycle."""

    @pytest.mark.asyncio
    async def test_sends_session_counters(self, collector):
        """Session counters reach the collector with the namespace."""
        config = AgentConfig(
            statsd=StatsdSettings(port=collector.getsockname()[1], namespace="fs", interval=0.05)
        )
        module = StatsdModule()
        module.sessions.session_created()

        await module.start(config)
        lines = [await receive(collector) for _ in range(6)]
        await module.stop()

        assert "fs.sessions_count:1|g" in lines
        assert "fs.sessions_since_startup:1|g" in lines
        assert all(line.startswith("fs.sessions_") for line in lines)

    @pytest.mark.asyncio
    async def test_without_database_only_session_counters(self, collector):
        """No configured database means no call/channel/registration gauges."""
        config = AgentConfig(statsd=StatsdSettings(port=collector.getsockname()[1], interval=0.05))
        module = StatsdModule()

        await module.start(config)
        await receive(collector)
        await module.stop()
        lines = await receive_all(collector)

        assert not any(line.startswith(("call_count", "channel_count", "registration_count")) for line in lines)

    @pytest.mark.asyncio
    async def test_unavailable_database_keeps_session_counters(self, collector, tmp_path):
        """A configured but missing database only drops its own counters."""
        config = AgentConfig(
            statsd=StatsdSettings(port=collector.getsockname()[1], interval=0.05),
            database=DatabaseSettings(path=str(tmp_path / "core.db"), hostname="switch01"),
        )
        module = StatsdModule()

        await module.start(config)
        lines = [await receive(collector) for _ in range(6)]
        status = module.status()
        await module.stop()

        names = {line.split(":")[0] for line in lines}
        assert "sessions_count" in names
        assert "call_count" not in names
        assert status["sources"] == {"sessions": True, "core_db": False}

    @pytest.mark.asyncio
    async def test_stop_releases_client(self, collector):
        """After stop the poller is terminated and nothing more is sent."""
        config = AgentConfig(statsd=StatsdSettings(port=collector.getsockname()[1], interval=0.05))
        module = StatsdModule()

        await module.start(config)
        assert module.is_running
        await receive(collector)
        await module.stop()
        await receive_all(collector)

        await asyncio.sleep(0.15)
        assert await receive_all(collector) == []

        status = module.status()
        assert status["state"] == PollerState.TERMINATED.value
        assert status["connected"] is False
        assert status["sent"] > 0

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, collector):
        """Stopping twice is harmless."""
        config = AgentConfig(statsd=StatsdSettings(port=collector.getsockname()[1], interval=0.05))
        module = StatsdModule()

        await module.start(config)
        await module.stop()
        await module.stop()

        assert module.poller.state == PollerState.TERMINATED

    @pytest.mark.asyncio
    async def test_connection_failure_keeps_polling(self):
        """The poller runs without a client when connect fails."""
        module = StatsdModule()

        with patch(
            "telemetry.module.StatsdClient.connect",
            side_effect=StatsdConnectionError("Cannot resolve nowhere.invalid:8125")
        ):
            await module.start(AgentConfig(statsd=StatsdSettings(host="nowhere.invalid", interval=0.02)))

        assert module.is_running
        await asyncio.sleep(0.1)
        status = module.status()
        await module.stop()

        assert status["connected"] is False
        assert status["collector"] is None
        assert status["cycles"] >= 1
        assert module.poller.state == PollerState.TERMINATED

    @pytest.mark.asyncio
    async def test_second_start_ignored(self, collector):
        """Starting an already started module does nothing."""
        config = AgentConfig(statsd=StatsdSettings(port=collector.getsockname()[1], interval=0.05))
        module = StatsdModule()

        await module.start(config)
        poller = module.poller
        await module.start(config)
        await module.stop()

        assert module.poller is poller


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
