"""FastAPI dependencies: DB sessions, clustering config, trigger auth."""

import hmac
from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loss_dedup.config.settings import Settings, get_settings
from loss_dedup.db.session import get_session_factory
from loss_dedup.errors import AuthenticationError
from loss_dedup.matching.config import ClusteringConfig, load_clustering_config


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory handed to the orchestrator."""
    return get_session_factory()


async def get_db(
    factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session for request handling."""
    async with factory() as session:
        yield session


@lru_cache
def get_clustering_config() -> ClusteringConfig:
    return load_clustering_config(get_settings().clustering_config_path)


async def require_cron_secret(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject trigger calls whose bearer token does not match the secret.

    With no secret configured the check is disabled (internal scheduler).
    """
    if not settings.cron_secret:
        return
    expected = f"Bearer {settings.cron_secret}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise AuthenticationError("Unauthorized")
