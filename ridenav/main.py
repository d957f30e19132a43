"""RideNav API - FastAPI application entry point.

Turn-by-turn cycling navigation with automatic rerouting, community hazard
warnings and surface quality warnings.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ridenav.api.v1 import navigation
from ridenav.config import get_settings
from ridenav.core.exceptions import RideNavException
from ridenav.core.logging_config import get_logger, setup_logging
from ridenav.core.middleware import RequestLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    setup_logging()
    logger = get_logger(__name__)
    logger.info(f"Starting RideNav API in {settings.APP_ENV} mode")
    yield
    # Shutdown
    logger.info("Shutting down RideNav API")


app = FastAPI(
    title="RideNav API",
    description="""RideNav guides cyclists turn by turn along a computed route.

Features: bike routes per preference (fastest, safest, shortest) from GraphHopper, maneuver extraction, off-route detection with automatic rerouting, dwell-confirmed arrival, and distance-ranked hazard and surface warnings.

Position fixes are throttled to one every few seconds; faster fixes are dropped. One navigation session is active per process.
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "health",
            "description": "Health checks",
        },
        {
            "name": "navigation",
            "description": "Route planning, navigation session commands and state",
        },
    ],
)

settings = get_settings()

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# Add CORS middleware (added last, executes first)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler for custom exceptions
@app.exception_handler(RideNavException)
async def ridenav_exception_handler(request: Request, exc: RideNavException):
    """Handle RideNav custom exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "path": request.url.path,
        },
    )


@app.get("/health", tags=["health"])
async def health_check():
    """Basic liveness check."""
    return {"status": "ok"}


app.include_router(navigation.router, prefix="/api/v1/navigation", tags=["navigation"])
