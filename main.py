import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from linkforge_app.config import settings
from linkforge_app.database.connection import engine, Base
from linkforge_app.logging_config import configure_logging
from linkforge_app.api.v1 import links, redirect

# Import models to ensure they're registered with Base
from linkforge_app.models import Link, ClickEvent

logger = logging.getLogger(__name__)


def start_embedded_worker(app: FastAPI):
    """Run a click worker on the API's event loop (single-process deployments)"""
    from linkforge_app.dependencies import get_click_tracker, get_directory, get_queue
    from linkforge_app.tracking.worker import ClickWorker

    overrides = app.dependency_overrides
    directory = overrides.get(get_directory, get_directory)()
    queue = overrides.get(get_queue, get_queue)()
    tracker = get_click_tracker(directory)
    worker = ClickWorker(queue=queue, tracker=tracker)
    return worker, asyncio.create_task(worker.start(), name="click-worker")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from linkforge_app.dependencies import get_click_scheduler

    configure_logging(settings.log_level)
    Base.metadata.create_all(bind=engine)

    worker = worker_task = None
    if settings.embedded_worker and settings.tracking_mode == "queue":
        worker, worker_task = start_embedded_worker(app)

    yield

    # Let in-flight click tasks finish before the loop goes away
    await get_click_scheduler().drain(timeout=settings.scheduler_drain_timeout)

    if worker is not None:
        worker.stop()
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="URL shortener with redirect resolution and click tracking",
    debug=settings.debug,
    lifespan=lifespan,
)


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers (redirect last: it catches every single-segment path)
app.include_router(links.router, prefix="/api/v1")
app.include_router(redirect.router)
