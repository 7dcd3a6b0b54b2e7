"""Tests for the CLI run/runs commands."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from loss_dedup.cli.__main__ import EXIT_BUSY, EXIT_FATAL, EXIT_OK, run_pass, show_runs
from loss_dedup.worker import orchestrator as orchestrator_module
from loss_dedup.worker.orchestrator import ClusteringOrchestrator
from loss_dedup.worker.run_lock import PASS_LOCK_NAME, acquire_lock


@pytest.fixture
def cli_db(test_session_factory, tmp_path):
    """Point the CLI at the test database and a missing config file."""
    with (
        patch("loss_dedup.cli.__main__.get_session_factory", return_value=test_session_factory),
        patch("loss_dedup.cli.__main__.dispose_engine", new=AsyncMock()),
    ):
        yield str(tmp_path / "clustering.yaml")


@pytest.mark.asyncio
async def test_run_prints_result(cli_db, add_signals, capsys):
    await add_signals({"id": "A", "source_type": "weather"}, {"id": "B"})

    code = await run_pass(cli_db)

    assert code == EXIT_OK
    out = json.loads(capsys.readouterr().out)
    assert out["clustersCreated"] == 1
    assert out["signalsClustered"] == 2


@pytest.mark.asyncio
async def test_run_busy(cli_db, test_session_factory, capsys):
    await acquire_lock(test_session_factory, PASS_LOCK_NAME, "other", ttl_seconds=60)

    code = await run_pass(cli_db)

    assert code == EXIT_BUSY
    assert json.loads(capsys.readouterr().out)["error"] == "Run in progress"


@pytest.mark.asyncio
async def test_run_fetch_failure(cli_db, monkeypatch, capsys):
    async def broken_fetch(session):
        raise RuntimeError("no route to host")

    monkeypatch.setattr(orchestrator_module, "fetch_unclustered_signals", broken_fetch)

    code = await run_pass(cli_db)

    assert code == EXIT_FATAL
    assert "no route to host" in json.loads(capsys.readouterr().out)["message"]


@pytest.mark.asyncio
async def test_runs_lists_history(cli_db, add_signals, capsys):
    await add_signals({"id": "A"})
    await run_pass(cli_db)
    capsys.readouterr()

    code = await show_runs(limit=5)

    assert code == EXIT_OK
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    run = json.loads(lines[0])
    assert run["trigger"] == "cli"
    assert run["status"] == "success"


@pytest.mark.asyncio
async def test_run_store_unreachable(cli_db, monkeypatch, capsys):
    async def unreachable(self, stop_event=None):
        raise OperationalError("INSERT INTO run_locks", {}, Exception("connection refused"))

    monkeypatch.setattr(ClusteringOrchestrator, "run", unreachable)

    code = await run_pass(cli_db)

    assert code == EXIT_FATAL
    out = json.loads(capsys.readouterr().out)
    assert out["error"] == "Loss signal clustering failed"
    assert "connection refused" in out["message"]


@pytest.mark.asyncio
async def test_run_stdout_is_only_json(cli_db, add_signals, capsys):
    await add_signals({"id": "A", "source_type": "weather"}, {"id": "B"})

    await run_pass(cli_db)

    captured = capsys.readouterr()
    assert captured.out.lstrip().startswith("{")
    json.loads(captured.out)
