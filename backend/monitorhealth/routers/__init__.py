"""API routers."""
from .monitors import router as monitors_router
from .status import router as status_router
from .events import router as events_router

__all__ = ["monitors_router", "status_router", "events_router"]
