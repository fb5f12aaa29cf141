"""
Database connection pool.

All PostgreSQL access goes through system_conn(). Never use pool.acquire()
directly outside this module.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from uuid import UUID

import asyncpg

from dislink import config

pool: asyncpg.Pool | None = None


async def init_pool() -> None:
    """
    Initialize the connection pool.
    Called once at application startup.
    """
    global pool
    pool = await asyncpg.create_pool(
        dsn=config.settings.DATABASE_URL,
        min_size=2,
        max_size=20,
        command_timeout=60,
        init=_init_connection,
    )


async def close_pool() -> None:
    """
    Close the connection pool.
    Called at application shutdown.
    """
    global pool
    if pool is not None:
        await pool.close()
        pool = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Set up type codecs for UUID and JSON columns on each new connection."""
    await conn.set_type_codec(
        "uuid",
        encoder=str,
        decoder=lambda x: UUID(x),
        schema="pg_catalog",
    )
    # Scan locations are stored as JSONB
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


@asynccontextmanager
async def system_conn():
    """
    Acquire a connection inside a transaction.

    Authorization (owner checks, reply visibility) is enforced by the service
    layer, not by row-level policies, because scanners are often anonymous.

    Usage:
        async with system_conn() as conn:
            row = await conn.fetchrow("SELECT * FROM needs WHERE id = $1", need_id)

    Yields:
        asyncpg.Connection
    """
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")

    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn
