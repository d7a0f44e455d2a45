"""API routers."""

from estate_api.routers.crm import router as crm_router
from estate_api.routers.internal import router as internal_router
from estate_api.routers.webhooks import router as webhooks_router

__all__ = [
    "crm_router",
    "internal_router",
    "webhooks_router",
]
