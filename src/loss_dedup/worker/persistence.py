"""Signal, cluster and membership persistence.

Provides the store operations the clustering pass needs:
- ``fetch_unclustered_signals``: all signals without a membership row.
- ``find_nearby_clusters``: clusters of one event type with an overlapping
  (padded) time window.
- ``insert_memberships``: idempotent membership insert.
- ``load_member_signals``: the current members of a cluster.
- ``record_run``: write the run history row.
"""

from __future__ import annotations

import datetime as dt

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from loss_dedup.models.cluster_signal import ClusterSignal
from loss_dedup.models.clustering_run import ClusteringRun
from loss_dedup.models.loss_cluster import LossCluster
from loss_dedup.models.loss_signal import LossSignal


def signal_to_dict(sig: LossSignal) -> dict:
    """Convert a LossSignal ORM object to the dict the candidate builder uses."""
    return {
        "id": sig.id,
        "event_type": sig.event_type,
        "source_type": sig.source_type,
        "source_name": sig.source_name,
        "occurred_at": sig.occurred_at,
        "lat": sig.lat,
        "lng": sig.lng,
        "address_text": sig.address_text,
        "city": sig.city,
        "state_code": sig.state_code,
        "zip": sig.zip,
        "severity_raw": sig.severity_raw,
        "confidence_raw": sig.confidence_raw,
    }


async def fetch_unclustered_signals(session: AsyncSession) -> list[dict]:
    """Load every signal that has no membership row, newest first."""
    linked = sa.select(ClusterSignal.signal_id)
    stmt = (
        sa.select(LossSignal)
        .where(LossSignal.id.not_in(linked))
        .order_by(LossSignal.occurred_at.desc(), LossSignal.id)
    )
    result = await session.execute(stmt)
    return [signal_to_dict(s) for s in result.scalars().all()]


async def find_nearby_clusters(
    session: AsyncSession,
    event_type: str,
    window_start: dt.datetime,
    window_end: dt.datetime,
    padding_hours: float,
) -> list[LossCluster]:
    """Clusters of ``event_type`` whose window overlaps the padded window.

    Ordered by id so "the first match" is stable across runs.
    """
    pad = dt.timedelta(hours=padding_hours)
    stmt = (
        sa.select(LossCluster)
        .where(
            LossCluster.event_type == event_type,
            LossCluster.time_window_start <= window_end + pad,
            LossCluster.time_window_end >= window_start - pad,
        )
        .order_by(LossCluster.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def _insert_ignore(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(ClusterSignal).on_conflict_do_nothing(index_elements=["signal_id"])
    if dialect == "sqlite":
        return sqlite.insert(ClusterSignal).on_conflict_do_nothing(index_elements=["signal_id"])
    raise NotImplementedError(f"idempotent membership insert not supported on {dialect}")


async def insert_memberships(session: AsyncSession, cluster_id: int, signal_ids: list[str]) -> int:
    """Link signals to a cluster, skipping any signal that is already linked.

    Returns:
        Number of membership rows actually inserted.
    """
    inserted = 0
    for signal_id in signal_ids:
        stmt = _insert_ignore(session).values(cluster_id=cluster_id, signal_id=signal_id)
        result = await session.execute(stmt)
        inserted += max(result.rowcount, 0)
    return inserted


async def load_member_signals(session: AsyncSession, cluster_id: int) -> list[LossSignal]:
    stmt = (
        sa.select(LossSignal)
        .join(ClusterSignal, ClusterSignal.signal_id == LossSignal.id)
        .where(ClusterSignal.cluster_id == cluster_id)
        .order_by(LossSignal.occurred_at, LossSignal.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def record_run(session: AsyncSession, run: ClusteringRun) -> int:
    """Persist a run history row.  Must be called within ``session.begin()``."""
    session.add(run)
    await session.flush()
    return run.id
