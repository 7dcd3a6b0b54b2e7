"""Read API for loss clusters (map overlays, feeds, lead routing)."""

from __future__ import annotations

import datetime as dt
import math
from collections import Counter
from typing import Literal

import sqlalchemy as sa
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from loss_dedup.api.deps import get_db
from loss_dedup.api.schemas import (
    BadgeSchema,
    ClusterDetail,
    ClusterStats,
    ClusterSummary,
    PaginatedResponse,
    SignalDetail,
)
from loss_dedup.matching.geo import to_naive_utc
from loss_dedup.models.cluster_signal import ClusterSignal
from loss_dedup.models.loss_cluster import LossCluster
from loss_dedup.scoring.confidence import VerificationStatus, verification_badge

router = APIRouter(prefix="/api/clusters", tags=["clusters"])

Tier = Literal["probable", "reported", "confirmed"]


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so a filter value only matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@router.get("", response_model=PaginatedResponse[ClusterSummary])
async def list_clusters(
    db: AsyncSession = Depends(get_db),
    event_type: str | None = None,
    verification_status: Tier | None = None,
    min_confidence: int | None = Query(default=None, ge=0, le=100),
    state_code: str | None = None,
    source_type: list[str] = Query(default=[]),
    start: dt.datetime | None = None,
    end: dt.datetime | None = None,
    min_lat: float | None = Query(default=None, ge=-90, le=90),
    max_lat: float | None = Query(default=None, ge=-90, le=90),
    min_lng: float | None = Query(default=None, ge=-180, le=180),
    max_lng: float | None = Query(default=None, ge=-180, le=180),
    page: int = Query(default=1, ge=1),
    size: int = Query(default=50, ge=1, le=1000),
) -> PaginatedResponse[ClusterSummary]:
    """List clusters with filtering and pagination.

    A bounding box must be given completely (all four of ``min_lat``,
    ``max_lat``, ``min_lng``, ``max_lng``) and switches ordering to
    confidence descending, as the map viewport expects.
    """
    stmt = sa.select(LossCluster)

    if event_type:
        stmt = stmt.where(LossCluster.event_type == event_type)
    if verification_status:
        stmt = stmt.where(LossCluster.verification_status == verification_status)
    if min_confidence is not None:
        stmt = stmt.where(LossCluster.confidence_score >= min_confidence)
    if state_code:
        stmt = stmt.where(LossCluster.state_code == state_code.upper())
    if start:
        stmt = stmt.where(LossCluster.time_window_start >= to_naive_utc(start))
    if end:
        stmt = stmt.where(LossCluster.time_window_end <= to_naive_utc(end))
    if source_type:
        # OR semantics: cluster must contain ANY of the requested types
        source_types_text = sa.cast(LossCluster.source_types, sa.String)
        stmt = stmt.where(
            sa.or_(*[source_types_text.like(f'%"{_escape_like(st)}"%', escape="\\") for st in source_type])
        )

    bbox = (min_lat, max_lat, min_lng, max_lng)
    if any(v is not None for v in bbox):
        if any(v is None for v in bbox):
            raise HTTPException(status_code=422, detail="Bounding box needs min_lat, max_lat, min_lng and max_lng")
        stmt = stmt.where(
            LossCluster.center_lat.between(min_lat, max_lat),
            LossCluster.center_lng.between(min_lng, max_lng),
        )
        stmt = stmt.order_by(LossCluster.confidence_score.desc(), LossCluster.id)
    else:
        stmt = stmt.order_by(LossCluster.time_window_start.desc(), LossCluster.id)

    count_stmt = sa.select(sa.func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    stmt = stmt.offset((page - 1) * size).limit(size)
    result = await db.execute(stmt)
    items = [ClusterSummary.model_validate(c) for c in result.scalars().all()]
    pages = math.ceil(total / size) if total > 0 else 1

    return PaginatedResponse(items=items, total=total, page=page, size=size, pages=pages)


@router.get("/stats", response_model=ClusterStats)
async def cluster_stats(
    db: AsyncSession = Depends(get_db),
    days: int = Query(default=7, ge=1, le=365),
) -> ClusterStats:
    """Dashboard metrics over clusters whose window started in the last ``days``."""
    cutoff = dt.datetime.now(dt.UTC).replace(tzinfo=None) - dt.timedelta(days=days)
    stmt = sa.select(
        LossCluster.event_type,
        LossCluster.verification_status,
        LossCluster.confidence_score,
        LossCluster.source_types,
    ).where(LossCluster.time_window_start >= cutoff)
    rows = (await db.execute(stmt)).all()

    by_status = {s.value: 0 for s in VerificationStatus}
    by_event: Counter[str] = Counter()
    multi_source = 0
    for row in rows:
        by_status[row.verification_status] = by_status.get(row.verification_status, 0) + 1
        by_event[row.event_type] += 1
        if len(row.source_types or []) > 1:
            multi_source += 1

    average = sum(r.confidence_score for r in rows) / len(rows) if rows else 0.0

    return ClusterStats(
        total_clusters=len(rows),
        by_verification_status=by_status,
        by_event_type=dict(by_event),
        multi_source_count=multi_source,
        average_confidence=round(average, 2),
    )


@router.get("/{cluster_id}", response_model=ClusterDetail)
async def get_cluster(
    cluster_id: int,
    db: AsyncSession = Depends(get_db),
) -> ClusterDetail:
    """Cluster detail with its linked signals."""
    stmt = (
        sa.select(LossCluster)
        .where(LossCluster.id == cluster_id)
        .options(selectinload(LossCluster.members).selectinload(ClusterSignal.signal))
    )
    cluster = (await db.execute(stmt)).scalar_one_or_none()

    if cluster is None:
        raise HTTPException(status_code=404, detail="Loss cluster not found")

    base_data = {c.key: getattr(cluster, c.key) for c in LossCluster.__table__.columns}
    base_data["source_types"] = cluster.source_types or []
    base_data["signals"] = [
        SignalDetail.model_validate(m.signal)
        for m in sorted(cluster.members, key=lambda m: (m.signal.occurred_at, m.signal.id))
    ]
    badge = verification_badge(
        cluster.verification_status, cluster.confidence_score, cluster.signal_count, cluster.source_types
    )
    base_data["badge"] = BadgeSchema.model_validate(badge)

    return ClusterDetail.model_validate(base_data)
