from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from toolbox.config import settings
from toolbox.api import routes
from toolbox.api.errors import register_error_handlers
from toolbox.services.ktv import KtvService
from toolbox.services.search import MusicSearchService
from toolbox.services.song import SongService
from toolbox.services.tunehub import TuneHubClient


# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events
    """
    app.state.tunehub_client = TuneHubClient.from_settings(settings)
    app.state.search_service = MusicSearchService(
        client=app.state.tunehub_client,
        platforms=settings.MUSIC_PLATFORMS,
    )
    app.state.song_service = SongService(settings.LOLIMI_BASE_URL, timeout=settings.HTTP_TIMEOUT)
    app.state.ktv_service = KtvService(timeout=settings.HTTP_TIMEOUT)

    if not app.state.tunehub_client.configured:
        logger.warning("TUNEHUB_API_KEY is not set; music search and parse will answer 500")
    logger.info("=" * 60)
    logger.info("Toolbox backend started successfully!")
    logger.info(f"TuneHub: {settings.TUNEHUB_BASE_URL}")
    logger.info(f"Platforms: {', '.join(settings.MUSIC_PLATFORMS)}")
    logger.info(f"Upstream timeout: {settings.HTTP_TIMEOUT}s")
    logger.info("=" * 60)

    yield


# Create FastAPI app
app = FastAPI(
    title="Toolbox API",
    description="工具箱: multi-platform music search, song parsing and K song downloads",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include API routes
app.include_router(routes.router)


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "Toolbox API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health"
    }


if __name__ == "__main__":
    import uvicorn

    # Run with uvicorn
    uvicorn.run(
        "toolbox.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info"
    )
