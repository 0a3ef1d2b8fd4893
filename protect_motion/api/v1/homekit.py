"""
HomeKit API endpoints

- GET /api/v1/homekit/status - Get HomeKit bridge status
"""
from fastapi import APIRouter, Depends

from protect_motion.schemas.device import HomekitStatusResponse
from protect_motion.services.homekit_service import HomekitService, get_homekit_service

router = APIRouter(
    prefix="/homekit",
    tags=["homekit"]
)


@router.get("/status", response_model=HomekitStatusResponse)
async def get_homekit_status(service: HomekitService = Depends(get_homekit_service)):
    """
    Get HomeKit bridge status.

    Returns current status including:
    - Whether HomeKit is enabled and running
    - Pairing status
    - Number of accessories
    - Setup code and URI (hidden if already paired)
    """
    service_status = service.get_status()
    return HomekitStatusResponse(
        enabled=service_status.enabled,
        running=service_status.running,
        paired=service_status.paired,
        accessory_count=service_status.accessory_count,
        bridge_name=service_status.bridge_name,
        setup_code=service_status.setup_code,
        setup_uri=service_status.setup_uri,
        port=service_status.port,
        error=service_status.error,
    )
