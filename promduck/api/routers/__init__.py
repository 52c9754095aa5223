"""promduck API routers package."""

from promduck.api.routers.health import router as health_router
from promduck.api.routers.remote import router as remote_router

__all__ = [
    "health_router",
    "remote_router",
]
