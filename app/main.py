"""
Code Battle API - Main application entry point.

Asynchronous code execution and timed multi-question battles.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import Database
from app.core.middleware import MaxBodySizeMiddleware
from app.jobs.queue import JobQueueClient
from app.jobs.service import JobDispatchService
from app.jobs.status import StatusStore
from app.jobs.views import router as code_router
from app.battles.views import router as battles_router
from app.questions.views import router as questions_router

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def build_services(app: FastAPI, queue_client: JobQueueClient, status_store: StatusStore) -> None:
    """Attach the shared queue client, status store and gateway to the app."""
    app.state.queue_client = queue_client
    app.state.status_store = status_store
    app.state.dispatch_service = JobDispatchService(queue_client, status_store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    await Database.connect()
    build_services(app, JobQueueClient(), StatusStore())
    yield
    # Shutdown
    await app.state.queue_client.close()
    await Database.disconnect()


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Queue code for sandboxed execution, poll its status, and compete in battles.",
        lifespan=lifespan if use_lifespan else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MaxBodySizeMiddleware)

    for router in (code_router, battles_router, questions_router):
        app.include_router(router)

    @app.get("/", tags=["Health"])
    async def root():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Detailed health check."""
        queue_client = getattr(app.state, "queue_client", None)
        return {
            "status": "healthy",
            "database": "connected" if Database.client else "disconnected",
            "broker": "connected" if queue_client and queue_client.connected else "idle",
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
