"""API routers package."""

from .presence import router as presence_router

__all__ = [
    "presence_router",
]
