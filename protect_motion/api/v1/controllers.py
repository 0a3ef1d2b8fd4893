"""
Controller status API endpoints

- GET /api/v1/controllers - Connection status of every configured controller
"""
from typing import List

from fastapi import APIRouter, Depends

from protect_motion.schemas.device import ControllerStatusResponse
from protect_motion.services.protect_service import ProtectService, get_protect_service

router = APIRouter(
    prefix="/controllers",
    tags=["controllers"]
)


@router.get("", response_model=List[ControllerStatusResponse])
async def list_controllers(service: ProtectService = Depends(get_protect_service)):
    """Per-controller connection status, device count and last error."""
    statuses = service.get_all_connection_statuses()
    return [ControllerStatusResponse(**s) for s in statuses.values()]
