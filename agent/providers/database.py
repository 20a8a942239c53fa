"""
Statsd Agent - Core Database Source

Counts calls, channels and registrations owned by this host in the host
application's SQLite core database.
"""

import platform
from pathlib import Path
from typing import Dict, Optional

import aiosqlite
import structlog

from .base import MetricsSource, SourceUnavailable

logger = structlog.get_logger(__name__)

# metric name -> table holding one row per item, tagged with the owning host
COUNT_TABLES = {
    "call_count": "basic_calls",
    "channel_count": "channels",
    "registration_count": "registrations",
}


class CoreDbSource(MetricsSource):
    """Per-host row counts from the core database."""

    def __init__(self, db_path: str, hostname: Optional[str] = None, timeout: float = 0.5):
        self._db_path = Path(db_path)
        self._hostname = hostname or platform.node()
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "core_db"

    @property
    def hostname(self) -> str:
        return self._hostname

    async def sample(self) -> Dict[str, int]:
        if not self._db_path.exists():
            raise SourceUnavailable(self.name, f"no database at {self._db_path}")

        counts: Dict[str, int] = {}
        try:
            # Read-only: never creates the database or its schema
            async with aiosqlite.connect(
                self._db_path.resolve().as_uri() + "?mode=ro", uri=True, timeout=self._timeout
            ) as db:
                for metric, table in COUNT_TABLES.items():
                    cursor = await db.execute(
                        f"SELECT COUNT(*) FROM {table} WHERE hostname = ?",
                        (self._hostname,)
                    )
                    row = await cursor.fetchone()
                    await cursor.close()
                    counts[metric] = int(row[0]) if row else 0
        except aiosqlite.Error as e:
            raise SourceUnavailable(self.name, str(e)) from e

        logger.debug("Core database sampled", hostname=self._hostname, **counts)
        return counts
