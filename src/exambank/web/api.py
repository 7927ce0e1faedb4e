"""FastAPI application factory.

Main entry point for the exambank Web API.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from exambank import __version__
from exambank.web.exam_service import get_exam_service
from exambank.web.routes import (
    exam_router,
    health_router,
    history_router,
    pool_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    service = get_exam_service()
    logger.info(
        "api_startup",
        data_dir=os.environ.get("EXAMBANK_DATA_DIR", "data"),
        history_file=str(service.history.path),
    )
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="exambank API",
        description="Compose, take and grade exams from a question pool",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(pool_router)
    app.include_router(exam_router)
    app.include_router(history_router)

    return app


# Default app instance for uvicorn
app = create_app()
