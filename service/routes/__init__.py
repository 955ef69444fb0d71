"""API routes package."""

from service.routes.validation_routes import router as validation_router
from service.routes.storage_routes import router as storage_router

__all__ = ["validation_router", "storage_router"]
