#!/usr/bin/env python3
"""
Statsd Agent

Runs the statsd reporting module as a standalone service:
- Session and per-host call/channel/registration counters
- One gauge per counter every poll interval, sent over UDP to statsd

Usage:
    python3 statsd-agent.py [--config CONFIG_PATH] [--debug]
"""

import asyncio
import argparse
import logging
import signal
import sys

import structlog

from telemetry.config import AgentConfig, load_config
from telemetry.module import StatsdModule


def configure_logging(level: str) -> None:
    """Configure structured logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger(__name__)


class StatsdAgent:
    """Standalone statsd agent process."""

    def __init__(self, config: AgentConfig):
        self.config = config
        self.module = StatsdModule()
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start reporting and wait for a shutdown signal."""
        logger.info("Starting statsd agent")
        await self.module.start(self.config)
        logger.info("Statsd agent started", **self.module.status())

        await self._shutdown_event.wait()

    async def stop(self):
        """Stop the agent gracefully."""
        logger.info("Stopping statsd agent")
        await self.module.stop()
        self._shutdown_event.set()
        logger.info("Statsd agent stopped", **self.module.status())

    def handle_signal(self, signum):
        """Handle shutdown signals."""
        logger.info("Received signal", signal=signum)
        asyncio.create_task(self.stop())


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Statsd metrics agent")
    parser.add_argument(
        "--config", "-c",
        default="config.yaml",
        help="Path to configuration file"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    configure_logging("DEBUG" if args.debug else "INFO")
    config = load_config(args.config)
    if not args.debug:
        logging.getLogger().setLevel(config.logging.level)

    agent = StatsdAgent(config)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, agent.handle_signal, signum)

    try:
        await agent.start()
    except Exception as e:
        logger.exception("Agent failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
