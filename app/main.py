"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import settings
from app.database import engine, Base
from app.routes.helmets import router as helmets_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = "HelmetPulse"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {APP_NAME}...")
    logger.info(f"Environment: {settings.environment}")

    # Create tables (for development; use Alembic migrations in production)
    if settings.environment == "development":
        Base.metadata.create_all(bind=engine)

    yield

    logger.info(f"Shutting down {APP_NAME}...")


app = FastAPI(
    title=APP_NAME,
    description="Price tracking for signed football helmets",
    version=VERSION,
    lifespan=lifespan,
)

app.include_router(helmets_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "healthy", "app": APP_NAME, "version": VERSION}


@app.get("/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "environment": settings.environment,
        "relaxed_matching": settings.reconcile_relaxed_matching,
        "scheduler_enabled": settings.scheduler_enabled,
    }
