"""
FastAPI Application Entry Point
ADHD Planner sync API server

Usage:
    # Development with auto-reload
    uvicorn planner_sync.app:app --reload

    # Production
    uvicorn planner_sync.app:app --host 0.0.0.0 --port 8000

    # Through the CLI
    planner-sync start
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from planner_sync import __version__
from planner_sync.config.loader import get_config
from planner_sync.core.logger import get_logger, setup_logging
from planner_sync.handlers import register_fastapi_routes

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI application lifecycle management"""
    logger.info("========== Planner Sync Starting ==========")

    try:
        config_loader = get_config()
        logger.info(f"✓ Configuration loaded: {config_loader.config_file}")

        from planner_sync.core.db import get_local_store

        store = get_local_store()
        logger.info(f"✓ Local store initialized: {store.db_path}")

        logger.info("========== Planner Sync Ready ==========")

    except Exception as e:
        logger.error(f"Failed to initialize backend: {e}", exc_info=True)
        raise

    yield

    logger.info("========== Planner Sync Shutting Down ==========")
    from planner_sync.services.migration_service import get_migration_service

    service = get_migration_service()
    if service.cancel():
        logger.info("✓ Running migration asked to stop")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="ADHD Planner Sync API",
        description="Local planner store and local-to-remote data migration",
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

    # Register API routes using the @api_handler decorator
    register_fastapi_routes(app, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "service": "ADHD Planner Sync API",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        from planner_sync.services.migration_service import get_migration_service

        return {
            "status": "healthy",
            "service": "planner-sync",
            "migration_running": get_migration_service().is_running,
        }

    logger.info("✓ FastAPI application created with routes")
    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    setup_logging()
    config = get_config()
    host = config.get("server.host", "127.0.0.1")
    port = config.get("server.port", 8000)
    debug = config.get("server.debug", False)

    logger.info(f"Starting server at http://{host}:{port}")

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="debug" if debug else "info",
    )
