from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.utils.logging_config import configure_for_environment, get_logger

# Configure logging first
configure_for_environment()

from app.routers import matches, resumes
from app.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    RequestLoggingMiddleware,
    PerformanceMiddleware,
)
from app.services import jobs_service as pipeline
from app.services.db import init_indexes
from app.services.scheduler import PeriodicScheduler
from app.utils.config import get_settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    # Startup
    logger.info("Resume Pipeline API starting up...")
    settings = get_settings()
    service = pipeline.jobs_service

    try:
        await init_indexes()
    except Exception as e:
        logger.warning(f"Database index initialization had issues: {e}")
        logger.info("Application will continue - some operations may be slower without indexes")

    service.worker.register(service.queue)
    sweep = PeriodicScheduler(
        settings.notification_settings.sweep_interval_seconds,
        service.notifications.check_for_new_jobs,
        name="check-new-jobs-sweep",
    )
    sweep.start()
    app.state.sweep = sweep

    logger.info("Resume Pipeline API startup completed")

    yield

    # Shutdown
    logger.info("Resume Pipeline API shutting down...")
    await sweep.stop()
    await service.queue.stop()
    logger.info("Resume Pipeline API shutdown completed")


app = FastAPI(title="Resume Pipeline API", version="1.0.0", lifespan=lifespan)

# Middleware is LIFO: the last one added runs first
app.add_middleware(PerformanceMiddleware, slow_request_threshold=2.0)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ExceptionHandlerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    return {"message": "Welcome to the Resume Pipeline API", "version": "1.0.0", "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    sweep = getattr(app.state, "sweep", None)
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "sweep_running": bool(sweep and sweep.running),
        "queue": (await pipeline.jobs_service.get_queue_stats()).dict(),
    }


app.include_router(resumes.router, prefix="/api/resumes", tags=["resumes"])
app.include_router(matches.router, prefix="/api/matches", tags=["matches"])

logger.info("Resume Pipeline API initialized successfully")
