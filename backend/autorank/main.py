"""
AutoRank FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autorank.api.routes import search
from autorank.config import settings

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting AutoRank API...")
    service = search.get_search_service()
    if not service.reference.loaded:
        logger.warning("Reference data missing; searches fall back to keyword matching")
    logger.info(
        f"Search service ready ({len(getattr(service.provider, 'records', []))} listings, "
        f"weights {service.scorer.weights.version})"
    )

    yield

    # Shutdown
    logger.info("Shutting down AutoRank API...")
    search.reset_search_service()


# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify actual frontend origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(search.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "AutoRank API",
        "version": settings.api_version,
        "endpoints": {
            "search": "/search?query=...",
            "suggest": "/search/suggest?q=...",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
