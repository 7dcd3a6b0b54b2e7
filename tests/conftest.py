"""Shared test fixtures."""

import datetime as dt
import itertools
import sys

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from loss_dedup.api.app import app
from loss_dedup.api.deps import get_clustering_config, get_db_session_factory
from loss_dedup.config.settings import Settings, get_settings
from loss_dedup.logging_config import configure_logging
from loss_dedup.matching.config import ClusteringConfig
from loss_dedup.models.base import Base
from loss_dedup.models.loss_signal import LossSignal

CRON_SECRET = "test-secret"

# Downtown Dallas; offsets below are roughly 1.1 km per 0.01 degree of latitude
BASE_LAT = 32.7767
BASE_LNG = -96.7970


_ids = itertools.count(1)


def signal_dict(**overrides) -> dict:
    """Build a signal dict as the candidate builder sees it."""
    data = {
        "id": f"sig-{next(_ids)}",
        "event_type": "fire",
        "source_type": "fire_report",
        "source_name": "test",
        "occurred_at": dt.datetime(2026, 10, 1, 12, 0),
        "lat": BASE_LAT,
        "lng": BASE_LNG,
        "address_text": None,
        "city": None,
        "state_code": None,
        "zip": None,
        "severity_raw": None,
        "confidence_raw": 0.9,
    }
    data.update(overrides)
    return data


@pytest.fixture(autouse=True)
def _logs_to_stderr():
    """Keep stdout free for the JSON the CLI prints."""
    configure_logging(json_output=False, log_level="INFO", stream=sys.stderr)


@pytest.fixture
def clustering_config() -> ClusteringConfig:
    return ClusteringConfig()


@pytest.fixture
async def test_engine():
    """Create an async SQLite in-memory engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture
def add_signals(test_session_factory):
    """Insert loss signals; each kwargs dict overrides the defaults."""

    async def _add(*specs: dict) -> list[str]:
        ids = []
        async with test_session_factory() as session, session.begin():
            for spec in specs:
                data = signal_dict(**spec)
                session.add(LossSignal(**data))
                ids.append(data["id"])
        return ids

    return _add


@pytest.fixture
async def api_client(test_engine, test_session_factory, clustering_config):
    """Async HTTP client hitting the FastAPI app with test DB."""
    app.dependency_overrides[get_db_session_factory] = lambda: test_session_factory
    app.dependency_overrides[get_settings] = lambda: Settings(cron_secret=CRON_SECRET)
    app.dependency_overrides[get_clustering_config] = lambda: clustering_config
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
def make_signal():
    """Factory for in-memory signal dicts."""
    return signal_dict
