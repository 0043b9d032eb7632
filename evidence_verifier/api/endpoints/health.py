"""Health check endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...infrastructure.dependencies import ServiceContainer, get_service_container

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(container: ServiceContainer = Depends(get_service_container)) -> Dict[str, Any]:
    """Check the health of the service and its oracle providers.

    Returns:
        Service status and oracle provider availability
    """
    return {
        "status": "healthy",
        "oracle_enabled": container.settings.oracle_enabled,
        "oracle_providers": {
            name.title(): is_active for name, is_active in container.oracle_factory.available_providers.items()
        },
    }
