from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine as sa_create_async_engine

from loss_dedup.config.settings import get_settings

_engine: AsyncEngine | None = None


def get_engine(echo: bool = False) -> AsyncEngine:
    """Return the process-wide async engine, creating it on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = sa_create_async_engine(settings.database_url, echo=echo, pool_pre_ping=True)
    return _engine


async def dispose_engine() -> None:
    """Close pooled connections (worker/CLI shutdown)."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
