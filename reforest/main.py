"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from reforest.config import settings
from reforest.domain.catalog import load_catalog
from reforest.middleware.error_handler import ErrorHandlerMiddleware
from reforest.api.dependencies import shutdown_dependencies
from reforest.api.v1.routers import recommendations, workflows

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/minute"],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Validates the species catalog on startup and closes HTTP clients on
    shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    catalog = load_catalog()
    logger.info(f"Species catalog: {len(catalog)} entries")
    logger.info(
        f"Reasoning: enabled={settings.reasoning_enabled}, "
        f"configured={bool(settings.reasoning_api_key)}, model={settings.reasoning_model}"
    )
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await shutdown_dependencies()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Tree Species Recommendation API for Reforestation Planning

    Upload a photo of a planting site and receive ranked, explainable tree
    species recommendations with a planting strategy and projected impact.

    ## Features

    - **Compatibility Scoring**: Temperature, rainfall, soil, moisture and
      native-region fit combined into a 0-100 score
    - **Guaranteed Results**: Standard, relaxed and hardy-fallback tiers so a
      recommendation set is never empty
    - **Optional AI Reasoning**: External rankings blended into local scores,
      ignored when unavailable
    - **Resumable Workflows**: Images without GPS data pause until a location
      is supplied, without re-processing the image
    - **Robust Error Handling**: Climate data retried with exponential backoff
      and replaced by a synthetic profile when unavailable
    - **Rate Limiting**: Protects the API from abuse
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

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
app.include_router(recommendations.router, prefix="/api/v1")
app.include_router(workflows.router, prefix="/api/v1")


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
