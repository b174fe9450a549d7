"""Main FastAPI application - wires the monitoring engine and runs the scheduler."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .database import async_session, init_db, close_db
from .repositories import MonitorRepository, CheckResultRepository, AlertRepository
from .routers import monitors_router, status_router, events_router
from .services import (
    ActiveSessionRegistry,
    AlerterService,
    CheckerService,
    ConnectionManager,
    EmailSenderService,
    MonitorService,
    SchedulerService,
)

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_engine(session_factory=async_session) -> dict:
    """Construct the engine components with their collaborators."""
    monitor_repository = MonitorRepository(session_factory)
    check_result_repository = CheckResultRepository(session_factory)
    alert_repository = AlertRepository(session_factory)

    events = ConnectionManager()
    sessions = ActiveSessionRegistry()

    monitor_service = MonitorService(
        checker=CheckerService(),
        monitor_repository=monitor_repository,
        check_result_repository=check_result_repository,
        alert_repository=alert_repository,
        alerter=AlerterService(EmailSenderService(), alert_repository),
        events=events,
    )
    scheduler = SchedulerService(monitor_repository, monitor_service, sessions=sessions)

    return {
        "scheduler": scheduler,
        "events": events,
        "sessions": sessions,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting MonitorHealth")

    await init_db()
    logger.info("Database initialized")

    scheduler = app.state.scheduler
    await scheduler.initialize_monitors()
    scheduler.start()

    yield

    scheduler.stop()
    await close_db()
    logger.info("Shutdown complete")


def create_app(components: dict = None, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="MonitorHealth",
        description="Scheduled HTTP health checks with validation and alerting",
        version=__version__,
        lifespan=lifespan if use_lifespan else None,
    )

    for name, component in (components or build_engine()).items():
        setattr(app.state, name, component)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(monitors_router)
    app.include_router(status_router)
    app.include_router(events_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "scheduler_running": app.state.scheduler.is_running,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
