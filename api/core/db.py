"""
Async database wiring (raw SQL) using asyncpg.

The pool is created from `Settings` in the FastAPI lifespan (see `api/main.py`)
and handed to repositories; this module keeps no global pool.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from .config import Settings

logger = logging.getLogger(__name__)

# Writes run at read committed: a conditional UPDATE waits on the row lock and
# re-evaluates its WHERE clause against the committed row, and
# INSERT ... ON CONFLICT resolves against rows committed after the snapshot.
# Reads that join rows with tags or counts use one repeatable-read snapshot.
READ_COMMITTED = "read_committed"
REPEATABLE_READ = "repeatable_read"


async def create_pool(settings: Settings) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        dsn=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        command_timeout=settings.command_timeout,
    )


@asynccontextmanager
async def transaction(
    pool: asyncpg.Pool,
    *,
    isolation: str = READ_COMMITTED,
    readonly: bool = False,
) -> AsyncIterator[asyncpg.Connection]:
    """
    Acquire a connection and run the block inside one transaction.

    Commits when the block finishes, rolls back on any exception (cancellation
    included). A failed rollback is logged and the original exception is the
    one that propagates.
    """
    async with pool.acquire() as conn:  # type: asyncpg.Connection
        tx = conn.transaction(isolation=isolation, readonly=readonly)
        await tx.start()
        try:
            yield conn
        except BaseException:
            try:
                await tx.rollback()
            except Exception:
                logger.exception("rollback_failed isolation=%s readonly=%s", isolation, readonly)
            raise
        await tx.commit()
