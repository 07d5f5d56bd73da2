"""Module: api."""

from fastapi import APIRouter

# Core operational routes.
from vaxwise.api.v1.routes.health import router as health_router

# Domain routes used by the farmer and vet dashboards.
from vaxwise.api.v1.routes.animals import router as animals_router
from vaxwise.api.v1.routes.vaccinations import router as vaccinations_router
from vaxwise.api.v1.routes.notifications import router as notifications_router


api_router = APIRouter()

# Register operational endpoints first for service-level concerns.
api_router.include_router(health_router, prefix="/health", tags=["health"])

# Register business/domain endpoints consumed by the application UI.
api_router.include_router(animals_router, prefix="/animals", tags=["animals"])
api_router.include_router(vaccinations_router, prefix="/vaccinations", tags=["vaccinations"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
