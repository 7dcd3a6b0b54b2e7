"""FastAPI application for the loss signal clustering engine."""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from loss_dedup.api.routes.clustering import router as clustering_router
from loss_dedup.api.routes.clusters import router as clusters_router
from loss_dedup.api.routes.health import router as health_router
from loss_dedup.errors import AuthenticationError, FetchError, LossDedupError

logger = structlog.get_logger()

app = FastAPI(title="Loss Signal Clustering API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(LossDedupError)
async def loss_dedup_error_handler(request: Request, exc: LossDedupError) -> JSONResponse:
    """Map engine exceptions onto status codes and a JSON error body."""
    if isinstance(exc, AuthenticationError):
        logger.warning("trigger_unauthorized", path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content={"error": "Unauthorized"})
    if isinstance(exc, FetchError):
        logger.error("clustering_failed", error=str(exc))
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "Loss signal clustering failed", "message": str(exc)},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "message": str(exc)},
    )


app.include_router(health_router)
app.include_router(clustering_router)
app.include_router(clusters_router)
