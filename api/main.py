"""
FastAPI Main Application
========================

Main FastAPI application instance with middleware, routes, and lifespan
management.

Run with:
    uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.error_handler import setup_error_handling
from api.routes import health, users
from api.services.asset_store import create_asset_store
from api.services.user_store import create_user_store
from config import Settings, get_settings
from exceptions import ConfigurationError, DocumentStoreError


logger = logging.getLogger(__name__)

# Global application state - stores the user store and asset store
app_state: Dict[str, Any] = {}


def configure_logging(settings: Settings) -> None:
    """Apply the configured log level and format to the root logger."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
        force=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan event handler for startup and shutdown.

    Startup:
    - Creates the user store and its unique indexes
    - Configures the Cloudinary asset store (left unset when credentials
      are missing; registration then fails with a server error)

    Shutdown:
    - Closes the document store client and clears state
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info(f"Starting ClipShare API ({settings.environment})")

    user_store = create_user_store(settings)
    try:
        await user_store.initialize()
    except DocumentStoreError as e:
        logger.error(f"Failed to initialize user store: {e}")
    app_state["user_store"] = user_store

    try:
        app_state["asset_store"] = create_asset_store(settings)
    except ConfigurationError as e:
        logger.warning(f"Asset store disabled: {e}")
        app_state["asset_store"] = None

    logger.info(f"API running at http://{settings.api_host}:{settings.api_port}")

    yield  # Application runs here

    logger.info("Shutting down ClipShare API")
    await user_store.close()
    app_state.clear()


# Create FastAPI application
app = FastAPI(
    title="ClipShare API",
    description="""
    User accounts for a video-sharing platform.

    ## Features
    - Registration with avatar and cover image upload
    - Login with access and refresh tokens (cookies and JSON body)
    - Logout and refresh-token rotation
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# =============================================================================
# Middleware Setup (order matters - first added = outermost)
# =============================================================================

settings = get_settings()

# CORS middleware - credentials are required for the auth cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global error handling middleware and framework exception handlers
setup_error_handling(app)


# =============================================================================
# Router Registration
# =============================================================================

app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["health"]
)

app.include_router(
    users.router,
    prefix="/api/v1/users",
    tags=["users"]
)


@app.get("/", tags=["root"])
async def root():
    """API information and links."""
    return {
        "message": "ClipShare API",
        "version": "1.0.0",
        "docs": "/api/docs",
        "health": "/api/v1/health"
    }
