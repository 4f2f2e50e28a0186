"""API routers."""
from .distributed import router as distributed_router
from .notifications import router as notifications_router

__all__ = ["distributed_router", "notifications_router"]
