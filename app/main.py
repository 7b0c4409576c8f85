"""FastAPI application for podcast upload processing.

This is the web service entry point: it accepts uploads, enqueues workflow
runs for the worker process, and serves project state and progress.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.exceptions import UploadLimitExceeded
from app.queue import get_workflow_queue
from app.routes import projects
from app.schemas.project import UploadRejection

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close the enqueue pool on shutdown."""
    yield

    await get_workflow_queue().close()
    log.info("workflow_queue_closed")


app = FastAPI(
    title="Podcast Processor",
    description="Transcribes uploaded podcasts and generates plan-gated content",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(projects.router)


@app.exception_handler(UploadLimitExceeded)
async def upload_limit_exceeded_handler(request: Request, exc: UploadLimitExceeded) -> JSONResponse:
    """Map plan limit rejections to 403 with a structured detail."""
    detail = UploadRejection(
        reason=exc.reason,
        message=str(exc),
        current_count=exc.current_count,
        limit=exc.limit,
    )
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": detail.model_dump()},
    )


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """Health check endpoint for deployment validation.

    Returns:
        JSONResponse: Status and basic service information
    """
    return JSONResponse(
        content={
            "status": "healthy",
            "service": "podcast-processor",
        }
    )


if __name__ == "__main__":
    import uvicorn

    # Binding to 0.0.0.0 is intentional for container deployments
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",  # noqa: S104
        port=8000,
        reload=True,
    )
