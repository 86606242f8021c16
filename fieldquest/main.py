"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fieldquest.config import settings
from fieldquest.api.rate_limit import limiter
from fieldquest.middleware.error_handler import ErrorHandlerMiddleware
from fieldquest.api.v1.routers import fields, sessions, stages

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Field grid: {settings.grid_width}x{settings.grid_height}, "
                f"growth delay: {settings.growth_delay_seconds}s")
    logger.info(f"Rate limit: {settings.rate_limit_requests} scans/minute")

    yield

    # Shutdown
    from fieldquest.infrastructure.store_client import get_store_client
    from fieldquest.services.application.game_session import get_session_registry
    logger.info("Shutting down application...")
    get_session_registry().close_all()
    client = get_store_client()
    await client.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Farm Game API

    Scan your field, work it tile by tile and earn points for every farming
    skill you pick up.

    ## Features

    - **Field Scanning**: Turn a photo of a field into a playable tile grid,
      or rescan a stored field to update its growth stage
    - **Tile Lifecycle**: Plough → Sow → Water → Harvest, with watered tiles
      growing on their own after a short delay
    - **Tasks & Rewards**: Each farming task pays out its points exactly once
    - **Robust Error Handling**: Automatic retries with exponential backoff for
      store calls; points are never awarded when saving fails
    - **Rate Limiting**: Protects the scan endpoints from abuse

    ## Field Stages

    empty (0%) → ploughed (20%) → planted (40%) → growing (70%) →
    mature (95%) → harvested (100%)
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add global error handling middleware
app.add_middleware(ErrorHandlerMiddleware)

# Include routers
app.include_router(sessions.router, prefix="/api/v1")
app.include_router(fields.router, prefix="/api/v1")
app.include_router(stages.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Root endpoint for health check.

    Returns:
        Status message
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
    }
