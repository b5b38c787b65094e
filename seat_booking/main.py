"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from seat_booking.api.v1.router import router as v1_router
from seat_booking.config import get_settings
from seat_booking.database import init_models
from seat_booking.redis_client import close_redis, get_redis, ping_redis
from seat_booking.schemas.common import ErrorResponse
from seat_booking.tasks import background_tasks

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Seat Booking API...")

    if settings.DB_CREATE_TABLES:
        await init_models()
        logger.info("Database tables ready")

    # Initialize Redis connection
    await get_redis()
    logger.info("Redis connection established")

    # Start background tasks
    await background_tasks.start()

    yield

    # Shutdown
    logger.info("Shutting down Seat Booking API...")

    # Stop background tasks
    await background_tasks.stop()

    # Close Redis connection
    await close_redis()
    logger.info("Redis connection closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## Study Library Seat Booking API

Monthly seat subscriptions for a study library.

### Seat lifecycle
- **Vacant**: anyone may request the seat
- **Held**: a party requested it; the hold lasts 30 minutes awaiting approval
- **Booked**: an admin approved the request; booked until the subscription ends
- **Selected**: the caller's own held seat (viewer overlay)

### Authentication
All endpoints require `X-User-ID` header for party identification.
Admin endpoints also require `X-User-Role: admin`.

### Workflow
1. Browse the seat map (`GET /api/v1/seats/availability`)
2. Request a seat (`POST /api/v1/bookings`), which holds it and records a pending booking
3. An admin approves or rejects the booking
4. Unapproved holds expire and the seat returns to vacant

### Real-time updates
Connect to `/api/v1/ws/seats` for seat change notifications.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(v1_router, prefix="/api")

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        redis_ok = await ping_redis()
        return {
            "status": "healthy" if redis_ok else "degraded",
            "version": settings.APP_VERSION,
            "redis": redis_ok,
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal Server Error",
                detail=str(exc) if settings.DEBUG else None,
                timestamp=datetime.now(),
            ).model_dump(mode="json"),
        )

    return app


# Create application instance
app = create_app()


def run():
    """Run the application with uvicorn."""
    uvicorn.run(
        "seat_booking.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
