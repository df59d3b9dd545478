"""
FastAPI application entry point for the Reading Stats API.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging

from config import settings
from database import engine, init_db
from schemas.common import ErrorBody, ErrorResponse
from utils.exceptions import ReadingError

# Import routers
from routers import reading, stats, leaderboard

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="[%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Reading Stats API",
    description="API for reading sessions, statistics, streaks and leaderboards",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReadingError)
async def reading_error_handler(request: Request, exc: ReadingError):
    """Render domain errors as {"error": {"code", "message"}}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorBody(code=exc.code, message=exc.message)).model_dump(),
    )


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    print("[INFO] Starting Reading Stats API...")

    # Create database tables if they don't exist
    # Note: In production, use Alembic migrations instead
    try:
        init_db()
        print("[INFO] Database tables initialized")
    except SQLAlchemyError as e:
        print(f"[ERROR] Database initialization failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    print("[INFO] Shutting down Reading Stats API...")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "message": "Reading Stats API is running",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """Detailed health check endpoint."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
    }


# Include routers
app.include_router(reading.router, prefix="/api/reading", tags=["Reading"])
app.include_router(stats.router, prefix="/api/user", tags=["Statistics"])
app.include_router(leaderboard.router, prefix="/api/social", tags=["Social"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
