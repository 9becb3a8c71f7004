"""API routes."""

from .health import router as health_router
from .training import router as training_router
from .jobs import router as jobs_router
from .downloads import router as downloads_router
from .users import router as users_router
from .admin import router as admin_router

__all__ = [
    "health_router",
    "training_router",
    "jobs_router",
    "downloads_router",
    "users_router",
    "admin_router",
]
