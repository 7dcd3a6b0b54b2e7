"""Liveness and readiness endpoints."""

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from loss_dedup.api.deps import get_db

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    """Liveness check; does not touch the database."""
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(db: AsyncSession = Depends(get_db)):
    """Readiness check: the store answers a trivial query."""
    try:
        await db.execute(sa.text("SELECT 1"))
    except SQLAlchemyError as e:
        return JSONResponse(status_code=503, content={"status": "unavailable", "error": str(e)})
    return {"status": "ok"}
