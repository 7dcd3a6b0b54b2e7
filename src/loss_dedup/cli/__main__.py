"""CLI entry point: python -m loss_dedup.cli {run,runs}"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import SQLAlchemyError

from loss_dedup.config.settings import get_settings
from loss_dedup.db.engine import dispose_engine
from loss_dedup.db.session import get_session_factory
from loss_dedup.errors import FetchError, RunInProgressError
from loss_dedup.logging_config import configure_logging
from loss_dedup.matching.config import load_clustering_config
from loss_dedup.models.clustering_run import ClusteringRun
from loss_dedup.worker.orchestrator import ClusteringOrchestrator

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_BUSY = 2


async def run_pass(config_path: str | None) -> int:
    """Run one pass, print the JSON result, return the exit code."""
    settings = get_settings()
    config = load_clustering_config(Path(config_path) if config_path else settings.clustering_config_path)
    orchestrator = ClusteringOrchestrator(get_session_factory(), config, trigger="cli")
    try:
        result = await orchestrator.run()
    except RunInProgressError as e:
        print(json.dumps({"error": "Run in progress", "message": str(e)}))
        return EXIT_BUSY
    except FetchError as e:
        print(json.dumps({"error": "Loss signal clustering failed", "message": str(e)}))
        return EXIT_FATAL
    except SQLAlchemyError as e:
        print(json.dumps({"error": "Loss signal clustering failed", "message": f"Store unavailable: {e}"}))
        return EXIT_FATAL
    finally:
        await dispose_engine()

    print(json.dumps(result.to_response(), indent=2))
    return EXIT_OK


async def show_runs(limit: int) -> int:
    """Print the most recent run history rows."""
    try:
        async with get_session_factory()() as session:
            stmt = sa.select(ClusteringRun).order_by(ClusteringRun.started_at.desc()).limit(limit)
            runs = (await session.execute(stmt)).scalars().all()
    finally:
        await dispose_engine()

    for run in runs:
        print(
            json.dumps(
                {
                    "id": run.id,
                    "trigger": run.trigger,
                    "status": run.status,
                    "startedAt": run.started_at.isoformat(),
                    "completedAt": run.completed_at.isoformat() if run.completed_at else None,
                    "clustersCreated": run.clusters_created,
                    "clustersUpdated": run.clusters_updated,
                    "signalsClustered": run.signals_clustered,
                    "signalsSuppressed": run.signals_suppressed,
                    "errors": run.errors or [],
                }
            )
        )
    return EXIT_OK


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="loss_dedup.cli",
        description="Loss signal clustering CLI",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run one clustering pass")
    run_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to clustering.yaml (default: LOSS_DEDUP_CLUSTERING_CONFIG_PATH)",
    )

    runs_parser = subparsers.add_parser("runs", help="Show recent clustering runs")
    runs_parser.add_argument("--limit", type=int, default=10, help="Number of runs (default: 10)")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level, stream=sys.stderr)
    structlog.get_logger().debug("cli_command", command=args.command)

    if args.command == "run":
        sys.exit(asyncio.run(run_pass(args.config)))
    if args.command == "runs":
        sys.exit(asyncio.run(show_runs(args.limit)))


if __name__ == "__main__":
    main()
