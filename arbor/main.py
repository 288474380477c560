"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from arbor.config import settings
from arbor.middleware.error_handler import ErrorHandlerMiddleware
from arbor.api.rate_limit import limiter
from arbor.api.v1.routers import sessions
from arbor.services.application.game_service import get_game_service

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
    Preload land boundaries on startup; tear down every session and the
    content provider on shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Models: text={settings.text_model}, image={settings.image_model}")
    logger.info(f"Globe: size={settings.globe_size}px, tilt={settings.globe_tilt}, "
                f"step={settings.globe_rotation_step}deg @ {settings.globe_frame_rate}fps")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    game_service = get_game_service()
    await game_service.load_land_boundaries()

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await game_service.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Seasonal tree identification game

    Identify a tree from its autumn portrait, then watch it in spring and see
    where in the world it grows.

    ## Features

    - **Generated Specimens**: Pools of three species per difficulty, with
      autumn and spring images and fun facts from a generative model
    - **Round Lifecycle**: Difficulty selection, guessing, reveal and
      advancement, with graceful degradation when reveal content fails
    - **Habitat Globe**: A rotating orthographic globe with pulsing habitat
      markers, served as draw primitives
    - **Robust Error Handling**: Automatic retries with exponential backoff for
      content API calls
    - **Rate Limiting**: Protects the content budget from abuse

    ## Game Flow

    1. Create a session and choose a difficulty
    2. Guess the specimen from three options
    3. On a correct guess, the spring image, fact and habitat globe are revealed
    4. Continue the trail; a fresh pool is generated when the current one ends
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Rate limiter shared with the routers
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
    """Liveness plus a summary of in-memory game state."""
    game_service = get_game_service()
    return {
        "status": "healthy",
        "service": settings.app_name,
        "sessions": game_service.session_count,
        "land_boundaries": game_service.has_land,
    }
