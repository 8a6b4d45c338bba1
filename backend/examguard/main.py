from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time

import psutil
from sqlalchemy import text

from examguard.core.config import settings
from examguard.core.database import AsyncSessionLocal, create_db_and_tables
from examguard.core.cache import cache
from examguard.api.v1.api import api_router
from examguard.middleware.timezone import TimezoneMiddleware

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Exam Guard API...")

    if settings.create_tables_on_startup:
        await create_db_and_tables()
        logger.info("Database initialized")

    try:
        if await cache.ahealth_check():
            logger.info("Cache connection established")
        else:
            logger.warning("Cache connection failed - live violation broadcasts will fail")
    except Exception as e:
        logger.error(f"Cache initialization error: {e}")

    logger.info("Exam Guard API startup completed")
    yield

    logger.info("Shutting down Exam Guard API...")
    try:
        await cache.aclose()
        logger.info("Cache connections closed")
    except Exception as e:
        logger.error(f"Error closing cache connections: {e}")
    logger.info("Exam Guard API shutdown completed")


app = FastAPI(
    title="Exam Guard API",
    description="Exam-integrity monitoring for online quizzes",
    version=VERSION,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(TimezoneMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
        }
    )


app.include_router(api_router, prefix="/api/v1")


async def _database_status() -> str:
    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        return "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return f"error: {e}"


@app.get("/health")
async def health_check():
    """Liveness of the monitor and of the stores it writes to"""
    services = {
        "database": await _database_status(),
        "broadcast_channel": "healthy" if await cache.ahealth_check() else "unhealthy",
    }
    memory = psutil.virtual_memory()
    return {
        "status": "healthy" if services["database"] == "healthy" else "unhealthy",
        "timestamp": time.time(),
        "version": VERSION,
        "services": services,
        "system": {
            "cpu_percent": psutil.cpu_percent(),
            "memory_percent": memory.percent,
        },
    }


@app.get("/")
async def read_root():
    return {
        "message": "Exam Guard API",
        "version": VERSION,
        "features": [
            "Fullscreen gate and focus/visibility watchdog",
            "Violation logging with live teacher broadcast",
            "Automatic submission after repeated violations",
        ]
    }
