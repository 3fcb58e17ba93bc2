"""
FastAPI application for the listing engine API.

Production deployment configuration via environment variables.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.listings import (
    HttpObjectStorageGateway,
    InMemoryDatabase,
    InMemoryObjectStorageGateway,
    ObjectStorageGateway,
    RequestSequencer,
    UploadTracker,
)
from utils.config import Config
from web.listing_routes import public_router
from web.listing_routes import router as listing_router

logger = logging.getLogger(__name__)

# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("RAILWAY_ENVIRONMENT") is not None or os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration - locked down for production
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]


def build_storage(config: Config) -> ObjectStorageGateway:
    """HTTP gateway when STORAGE_GATEWAY_URL is set, otherwise in-memory."""
    if config.storage_gateway_url:
        return HttpObjectStorageGateway(
            base_url=config.storage_gateway_url,
            timeout=config.request_timeout,
        )
    logger.warning("STORAGE_GATEWAY_URL not set; using in-memory object storage")
    return InMemoryObjectStorageGateway()


def create_app(
    config: Optional[Config] = None,
    storage: Optional[ObjectStorageGateway] = None,
    db: Optional[InMemoryDatabase] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Settings; loaded from env if omitted
        storage: Object storage gateway override
        db: Backing store override
    """
    config = config if config is not None else Config.load()

    app = FastAPI(
        title="Listing Engine",
        description="Property listing lifecycle, media, documents and recommendations",
        version="0.1.0",
        # Production settings: disable docs/redoc for private deployment
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=config.debug and not IS_PRODUCTION,
    )

    # Healthcheck endpoints first; they perform no IO.
    @app.get("/", include_in_schema=False)
    def root():
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        return {
            "status": "healthy",
            "version": "0.1.0",
            "environment": "production" if IS_PRODUCTION else "development",
        }

    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
            allow_headers=["*"],
        )

    app.state.config = config
    app.state.db = db if db is not None else InMemoryDatabase(config.persist_path)
    app.state.storage = storage if storage is not None else build_storage(config)
    app.state.sequencer = RequestSequencer()
    app.state.tracker = UploadTracker()

    app.include_router(listing_router)
    app.include_router(public_router)

    logger.info("Listing engine configured (persist=%s)", config.persist)
    return app


# Create app instance for uvicorn
app = create_app()
