"""Trigger endpoint for the clustering pass and its run history."""

from __future__ import annotations

import dataclasses

import sqlalchemy as sa
import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loss_dedup.api.deps import get_clustering_config, get_db, get_db_session_factory, require_cron_secret
from loss_dedup.api.schemas import ClusteringResultResponse, ClusteringRunSchema
from loss_dedup.errors import FetchError
from loss_dedup.matching.config import ClusteringConfig
from loss_dedup.models.clustering_run import ClusteringRun
from loss_dedup.worker.orchestrator import ClusteringOrchestrator

logger = structlog.get_logger()

router = APIRouter(prefix="/api/clustering", tags=["clustering"])


@router.post(
    "/run",
    response_model=ClusteringResultResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def run_clustering(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    config: ClusteringConfig = Depends(get_clustering_config),
) -> ClusteringResultResponse:
    """Run one clustering pass and return its counters.

    Per-candidate failures are reported in ``errors`` with status 200.
    """
    orchestrator = ClusteringOrchestrator(session_factory, config, trigger="api")
    try:
        result = await orchestrator.run()
    except SQLAlchemyError as e:
        # Store unreachable before the fetch (e.g. while taking the lease)
        raise FetchError(f"Store unavailable: {e}") from e
    logger.info("clustering_triggered", **result.to_response())
    return ClusteringResultResponse(**dataclasses.asdict(result))


@router.get("/runs", response_model=list[ClusteringRunSchema])
async def list_runs(
    db: AsyncSession = Depends(get_db),
    limit: int = Query(default=20, ge=1, le=200),
) -> list[ClusteringRunSchema]:
    """Most recent clustering runs, newest first."""
    stmt = sa.select(ClusteringRun).order_by(ClusteringRun.started_at.desc(), ClusteringRun.id.desc()).limit(limit)
    result = await db.execute(stmt)
    return [ClusteringRunSchema.model_validate(r) for r in result.scalars().all()]
