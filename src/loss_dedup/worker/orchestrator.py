"""Clustering pass orchestrator.

Drives one full pass:
1. Acquire the pass lease (no overlapping runs)
2. Fetch all unclustered signals (fatal on failure)
3. Build candidates and apply suppression (pure function)
4. Merge each candidate in its own transaction, isolating failures
5. Record the run and return the aggregated result
"""

from __future__ import annotations

import asyncio
import datetime as dt
import time
from dataclasses import dataclass, field

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from loss_dedup.clustering.candidates import build_candidates
from loss_dedup.clustering.merger import merge_candidate
from loss_dedup.errors import FetchError, PerCandidateError, PersistenceConflict
from loss_dedup.matching.config import ClusteringConfig
from loss_dedup.models.clustering_run import ClusteringRun
from loss_dedup.worker.persistence import fetch_unclustered_signals, record_run
from loss_dedup.worker.run_lock import pass_lock

logger = structlog.get_logger()


@dataclass
class ClusteringResult:
    """Aggregated counters for one pass."""

    success: bool = False
    clusters_created: int = 0
    clusters_updated: int = 0
    signals_clustered: int = 0
    signals_suppressed: int = 0
    signals_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if not self.success:
            return "failed"
        return "partial" if self.errors else "success"

    def to_response(self) -> dict:
        """The JSON body returned by the trigger endpoint and CLI."""
        return {
            "success": self.success,
            "clustersCreated": self.clusters_created,
            "clustersUpdated": self.clusters_updated,
            "signalsClustered": self.signals_clustered,
            "signalsSuppressed": self.signals_suppressed,
            "signalsSkipped": self.signals_skipped,
            "errors": list(self.errors),
        }


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC).replace(tzinfo=None)


class ClusteringOrchestrator:
    """Runs clustering passes against an injected session factory.

    Args:
        session_factory: Async session factory for the signal/cluster store.
        config: Clustering configuration.
        trigger: Label stored on the run history row (``api``, ``worker``,
            ``cli``).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        config: ClusteringConfig,
        trigger: str = "worker",
    ) -> None:
        self._session_factory = session_factory
        self._config = config
        self._trigger = trigger

    async def run(self, stop_event: asyncio.Event | None = None) -> ClusteringResult:
        """Run one pass under the pass lease.

        Raises:
            RunInProgressError: another pass holds the lease.
            FetchError: the unclustered signals could not be read.
        """
        async with pass_lock(self._session_factory, self._config.run.lock_ttl_seconds) as holder:
            return await self.run_unlocked(stop_event, run_id=holder)

    async def run_unlocked(
        self, stop_event: asyncio.Event | None = None, run_id: str | None = None
    ) -> ClusteringResult:
        """Run one pass without taking the lease (caller serializes)."""
        log = logger.bind(run_id=run_id, trigger=self._trigger)
        started_at = _utcnow()
        result = ClusteringResult()
        log.info("pass_started")

        # Step 1: Fetch unclustered signals -- nothing has been written yet
        try:
            async with self._session_factory() as session:
                signals = await fetch_unclustered_signals(session)
        except Exception as e:
            log.error("signal_fetch_failed", error=str(e), exc_info=True)
            result.errors.append(f"Fatal error: failed to fetch unclustered signals: {e}")
            await self._record(result, started_at, signals_fetched=0, log=log)
            raise FetchError(f"Failed to fetch unclustered signals: {e}") from e

        log.info("signals_loaded", unclustered=len(signals))
        if not signals:
            result.success = True
            await self._record(result, started_at, signals_fetched=0, log=log)
            return result

        # Step 2: Build candidates (pure function)
        built = build_candidates(signals, self._config)
        result.signals_suppressed = len(built.suppressed_ids)
        result.signals_skipped = len(built.skipped_ids)
        log.info(
            "candidates_built",
            candidates=len(built.candidates),
            suppressed=result.signals_suppressed,
            skipped_no_coordinates=result.signals_skipped,
            grouping=self._config.match.grouping,
        )

        # Step 3: Merge candidates one at a time
        deadline = None
        if self._config.run.max_run_seconds is not None:
            deadline = time.monotonic() + self._config.run.max_run_seconds

        for index, candidate in enumerate(built.candidates):
            stop_requested = stop_event is not None and stop_event.is_set()
            if stop_requested or (deadline is not None and time.monotonic() > deadline):
                deferred = len(built.candidates) - index
                reason = "cancelled" if stop_requested else "deadline exceeded"
                log.warning("pass_stopped_early", reason=reason, deferred_candidates=deferred)
                result.errors.append(f"Run {reason}: {deferred} candidate(s) deferred to the next pass")
                break

            try:
                async with self._session_factory() as session, session.begin():
                    outcome = await merge_candidate(session, candidate, self._config)
            except PersistenceConflict as e:
                log.info("candidate_already_clustered", signal_ids=candidate.signal_ids, detail=str(e))
                continue
            except Exception as e:
                err = PerCandidateError(candidate.signal_ids, e)
                log.error("candidate_merge_failed", signal_ids=candidate.signal_ids, error=str(e), exc_info=True)
                result.errors.append(str(err))
                continue

            if outcome.created:
                result.clusters_created += 1
            else:
                result.clusters_updated += 1
            result.signals_clustered += outcome.signals_linked

        result.success = True
        log.info(
            "pass_complete",
            clusters_created=result.clusters_created,
            clusters_updated=result.clusters_updated,
            signals_clustered=result.signals_clustered,
            signals_suppressed=result.signals_suppressed,
            errors=len(result.errors),
        )
        await self._record(result, started_at, signals_fetched=len(signals), log=log)
        return result

    async def _record(
        self,
        result: ClusteringResult,
        started_at: dt.datetime,
        signals_fetched: int,
        log,
    ) -> None:
        run = ClusteringRun(
            trigger=self._trigger,
            status=result.status,
            started_at=started_at,
            completed_at=_utcnow(),
            signals_fetched=signals_fetched,
            clusters_created=result.clusters_created,
            clusters_updated=result.clusters_updated,
            signals_clustered=result.signals_clustered,
            signals_suppressed=result.signals_suppressed,
            signals_skipped=result.signals_skipped,
            errors=list(result.errors),
        )
        # History write failures are logged, never propagated
        try:
            async with self._session_factory() as session, session.begin():
                await record_run(session, run)
        except SQLAlchemyError as e:
            log.warning("run_history_write_failed", error=str(e))
