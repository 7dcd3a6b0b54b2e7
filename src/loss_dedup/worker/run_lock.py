"""Database-backed lease that keeps clustering passes from overlapping.

Two passes racing through the search-then-write merge could both create a
cluster for the same incident.  Holding a row in ``run_locks`` for the
duration of the pass serializes them across processes; the lease expires
after ``ttl_seconds`` so a crashed pass does not block later ones.
"""

from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from loss_dedup.errors import RunInProgressError
from loss_dedup.models.run_lock import RunLock

logger = structlog.get_logger()

PASS_LOCK_NAME = "clustering_pass"


async def acquire_lock(
    session_factory: async_sessionmaker, name: str, holder: str, ttl_seconds: int
) -> bool:
    """Try to take the named lease.  Returns ``False`` if someone else holds it."""
    now = dt.datetime.now(dt.UTC).replace(tzinfo=None)
    try:
        async with session_factory() as session, session.begin():
            # Reclaim a stale lease left by a crashed run
            await session.execute(
                sa.delete(RunLock).where(RunLock.name == name, RunLock.expires_at < now)
            )
            session.add(
                RunLock(
                    name=name,
                    holder=holder,
                    acquired_at=now,
                    expires_at=now + dt.timedelta(seconds=ttl_seconds),
                )
            )
    except IntegrityError:
        return False
    return True


async def release_lock(session_factory: async_sessionmaker, name: str, holder: str) -> None:
    async with session_factory() as session, session.begin():
        await session.execute(
            sa.delete(RunLock).where(RunLock.name == name, RunLock.holder == holder)
        )


@asynccontextmanager
async def pass_lock(
    session_factory: async_sessionmaker,
    ttl_seconds: int,
    name: str = PASS_LOCK_NAME,
) -> AsyncIterator[str]:
    """Hold the pass lease for the body of the ``async with`` block.

    Yields:
        The holder token.

    Raises:
        RunInProgressError: the lease is held by another pass.
    """
    holder = uuid.uuid4().hex
    if not await acquire_lock(session_factory, name, holder, ttl_seconds):
        logger.warning("run_lock_busy", lock=name)
        raise RunInProgressError(f"another clustering pass holds lock '{name}'")
    try:
        yield holder
    finally:
        await release_lock(session_factory, name, holder)
