"""Scheduled clustering worker: python -m loss_dedup.worker

Runs one pass immediately, then one every ``worker_interval_seconds``
until SIGTERM/SIGINT.  A pass in flight finishes its current candidate
before the worker exits.
"""

import argparse
import asyncio
import signal

import structlog
from sqlalchemy.exc import SQLAlchemyError

from loss_dedup.config.settings import get_settings
from loss_dedup.db.engine import dispose_engine
from loss_dedup.db.session import get_session_factory
from loss_dedup.errors import FetchError, RunInProgressError
from loss_dedup.logging_config import configure_logging
from loss_dedup.matching.config import load_clustering_config
from loss_dedup.worker.orchestrator import ClusteringOrchestrator


async def run_forever(orchestrator: ClusteringOrchestrator, interval: float, stop_event: asyncio.Event) -> None:
    log = structlog.get_logger()
    while not stop_event.is_set():
        try:
            result = await orchestrator.run(stop_event=stop_event)
            log.info("scheduled_pass_finished", **result.to_response())
        except RunInProgressError:
            log.info("scheduled_pass_skipped", reason="run_in_progress")
        except FetchError as e:
            log.error("scheduled_pass_failed", error=str(e))
        except SQLAlchemyError as e:
            # Store unreachable while taking or releasing the lease
            log.error("scheduled_pass_failed", error=str(e), exc_info=True)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def main(once: bool = False) -> None:
    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)
    log = structlog.get_logger()

    config = load_clustering_config(settings.clustering_config_path)
    orchestrator = ClusteringOrchestrator(get_session_factory(), config, trigger="worker")

    log.info(
        "worker_starting",
        interval_seconds=settings.worker_interval_seconds,
        database=settings.database_url.split("@")[-1],
        grouping=config.match.grouping,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        if once:
            result = await orchestrator.run(stop_event=stop_event)
            log.info("single_pass_finished", **result.to_response())
        else:
            await run_forever(orchestrator, settings.worker_interval_seconds, stop_event)
    finally:
        await dispose_engine()
    log.info("worker_shutdown")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(prog="loss_dedup.worker", description="Scheduled clustering worker")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    args = parser.parse_args()
    asyncio.run(main(once=args.once))
