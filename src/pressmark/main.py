"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse

from pressmark.config import get_settings
from pressmark.exceptions import NodeProcessingError
from pressmark.models.db import close_db, init_db
from pressmark.routers import media, nodes
from pressmark.services.cache import reset_cache
from pressmark.services.derivatives import reset_derivative_renderer
from pressmark.services.node_store import reset_node_store
from pressmark.services.processor import reset_node_processor
from pressmark.services.wordpress import shutdown_wordpress_service

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("pressmark")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    settings = get_settings()

    # Startup
    logger.info("Starting pressmark")
    if settings.debug:
        logger.debug("Debug mode enabled")
        logger.debug("WordPress site: %s", settings.base_url or "(not configured)")
    if not settings.wp_url:
        logger.warning("WP_URL is not set; inline images and links will be left untouched")

    await init_db()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down pressmark")
    await shutdown_wordpress_service()
    reset_node_processor()
    reset_derivative_renderer()
    reset_node_store()
    reset_cache()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="pressmark",
        description="Rewrites WordPress content records for static publication",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    @app.exception_handler(NodeProcessingError)
    async def node_processing_exception_handler(request: Request, exc: NodeProcessingError):
        """Report a record whose processing had to be aborted."""
        logger.error("Aborted processing of node %s: %s", exc.node_id, exc.message)
        return JSONResponse(
            status_code=502,
            content={"detail": exc.message, "node_id": exc.node_id},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception(f"Unhandled exception: {exc}")

        if settings.debug:
            return JSONResponse(
                status_code=500,
                content={"detail": str(exc), "type": type(exc).__name__},
            )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    # Generated image derivatives
    @app.get("/static/{file_path:path}")
    async def serve_derivative(file_path: str) -> FileResponse:
        """Serve a generated image derivative."""
        # Security: prevent path traversal
        if ".." in Path(file_path).parts or file_path.startswith("/"):
            raise HTTPException(status_code=400, detail="Invalid file path")

        file = Path(settings.derivatives_path) / file_path
        if not file.is_file():
            raise HTTPException(status_code=404, detail="Static file not found")

        return FileResponse(file, headers={"Cache-Control": "public, max-age=31536000, immutable"})

    # Include routers
    app.include_router(nodes.router)
    app.include_router(media.router)

    return app


# Create the application instance
app = create_app()
