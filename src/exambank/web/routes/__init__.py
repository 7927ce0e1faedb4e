"""Route handlers for the Web API."""

from exambank.web.routes.health import router as health_router
from exambank.web.routes.pool import router as pool_router
from exambank.web.routes.exam import router as exam_router
from exambank.web.routes.history import router as history_router

__all__ = [
    "health_router",
    "pool_router",
    "exam_router",
    "history_router",
]
