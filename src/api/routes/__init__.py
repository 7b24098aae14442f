"""API route handlers."""

from .health import router as health_router
from .sessions import router as sessions_router

__all__ = ["health_router", "sessions_router"]
