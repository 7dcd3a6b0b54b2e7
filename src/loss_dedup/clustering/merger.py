"""Fold one candidate into persisted cluster state.

The merge is search-then-write: find an existing cluster of the same event
type whose (padded) window overlaps the candidate and whose centroid is
within range, update it or create a new one, then link every candidate
signal.  It runs inside the caller's transaction so a failure rolls back
the whole candidate.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from loss_dedup.clustering.candidates import Candidate
from loss_dedup.errors import PersistenceConflict
from loss_dedup.matching.config import ClusteringConfig
from loss_dedup.matching.geo import distance_km, to_naive_utc
from loss_dedup.models.loss_cluster import LossCluster
from loss_dedup.models.loss_signal import LossSignal
from loss_dedup.scoring.confidence import confidence_score, verification_status
from loss_dedup.worker.persistence import (
    find_nearby_clusters,
    insert_memberships,
    load_member_signals,
)

logger = structlog.get_logger()

ADDRESS_FIELDS = ("address_text", "city", "state_code", "zip")


@dataclass
class MergeOutcome:
    cluster_id: int
    created: bool
    signals_linked: int
    confidence_score: int
    verification_status: str


def address_completeness(record) -> int:
    """Number of populated address fields on a signal dict or cluster."""
    get = record.get if isinstance(record, dict) else lambda k: getattr(record, k)
    return sum(1 for f in ADDRESS_FIELDS if get(f))


def best_address_signal(signals: list[dict]) -> dict:
    """The most complete member signal; ties go to the earliest in the list."""
    return max(signals, key=address_completeness)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC).replace(tzinfo=None)


async def _select_target(
    session: AsyncSession, candidate: Candidate, config: ClusteringConfig
) -> LossCluster | None:
    nearby = await find_nearby_clusters(
        session,
        candidate.event_type,
        to_naive_utc(candidate.time_window_start),
        to_naive_utc(candidate.time_window_end),
        config.merge.window_padding_hours,
    )
    for cluster in nearby:
        dist = distance_km(
            (cluster.center_lat, cluster.center_lng),
            (candidate.center_lat, candidate.center_lng),
        )
        if dist <= config.match.max_distance_km:
            return cluster
    return None


async def _create_cluster(session: AsyncSession, candidate: Candidate) -> LossCluster:
    source_types = candidate.source_types
    score = confidence_score(source_types)
    primary = best_address_signal(candidate.signals)
    now = _utcnow()

    cluster = LossCluster(
        event_type=candidate.event_type,
        center_lat=candidate.center_lat,
        center_lng=candidate.center_lng,
        address_text=primary.get("address_text"),
        city=primary.get("city"),
        state_code=primary.get("state_code"),
        zip=primary.get("zip"),
        time_window_start=to_naive_utc(candidate.time_window_start),
        time_window_end=to_naive_utc(candidate.time_window_end),
        confidence_score=score,
        verification_status=verification_status(score).value,
        signal_count=len(candidate),
        source_types=sorted(source_types),
        created_at=now,
        updated_at=now,
    )
    session.add(cluster)
    await session.flush()
    return cluster


def _refresh_geometry(cluster: LossCluster, members: list[LossSignal]) -> None:
    """Recompute centroid and time window from the cluster's members."""
    members = [m for m in members if m.lat is not None and m.lng is not None]
    if not members:
        return
    cluster.center_lat = sum(m.lat for m in members) / len(members)
    cluster.center_lng = sum(m.lng for m in members) / len(members)
    cluster.time_window_start = min(m.occurred_at for m in members)
    cluster.time_window_end = max(m.occurred_at for m in members)


def _apply_linked(cluster: LossCluster, linked_signals: list[dict], linked: int, created: bool) -> None:
    """Fold the signals that were actually linked into the cluster.

    A freshly created cluster is rebuilt from them alone, so signals that
    lost a linking race contribute no source type, score or address.
    """
    linked_types = {s["source_type"] for s in linked_signals}
    if created:
        union = linked_types
        score = confidence_score(union)
        cluster.signal_count = linked
    else:
        union = set(cluster.source_types or []) | linked_types
        # Never lower an existing score
        score = max(cluster.confidence_score, confidence_score(union))
        cluster.signal_count = cluster.signal_count + linked

    cluster.confidence_score = score
    cluster.verification_status = verification_status(score).value
    cluster.source_types = sorted(union)

    primary = best_address_signal(linked_signals)
    if created or address_completeness(primary) > address_completeness(cluster):
        for f in ADDRESS_FIELDS:
            setattr(cluster, f, primary.get(f))

    cluster.updated_at = _utcnow()


async def merge_candidate(
    session: AsyncSession, candidate: Candidate, config: ClusteringConfig
) -> MergeOutcome:
    """Create or update the cluster for one candidate and link its signals.

    Must be called within an active ``session.begin()`` context.

    Raises:
        PersistenceConflict: every candidate signal was already linked
            elsewhere (e.g. by an overlapping run).  The caller should roll
            back and treat the candidate as a no-op.
    """
    target = await _select_target(session, candidate, config)
    created = target is None
    if target is None:
        target = await _create_cluster(session, candidate)

    linked = await insert_memberships(session, target.id, candidate.signal_ids)
    if linked == 0:
        raise PersistenceConflict(f"all {len(candidate)} signal(s) already belong to a cluster")

    members = await load_member_signals(session, target.id)
    member_ids = {m.id for m in members}
    linked_signals = [s for s in candidate.signals if s["id"] in member_ids]
    _apply_linked(target, linked_signals, linked, created)
    _refresh_geometry(target, members)

    await session.flush()

    logger.debug(
        "candidate_merged",
        cluster_id=target.id,
        created=created,
        signals_linked=linked,
        confidence_score=target.confidence_score,
    )
    return MergeOutcome(
        cluster_id=target.id,
        created=created,
        signals_linked=linked,
        confidence_score=target.confidence_score,
        verification_status=target.verification_status,
    )
