"""
Exposed device API endpoints

- GET /api/v1/devices - List exposed devices
- GET /api/v1/devices/{identity} - Get one exposed device
- PUT /api/v1/devices/{identity}/motion-enabled - Toggle the local motion filter
- PUT /api/v1/devices/{identity}/led - Toggle the status LED (asynchronous)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from protect_motion.schemas.device import (
    DeviceListResponse,
    DeviceResponse,
    LedRequest,
    LedRequestAccepted,
    MotionEnabledRequest,
)
from protect_motion.services.camera_device import CameraDeviceState
from protect_motion.services.protect_service import ProtectService, get_protect_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/devices",
    tags=["devices"]
)


def _get_device_or_404(service: ProtectService, identity: str) -> CameraDeviceState:
    device = service.synchronizer.get(identity)
    if device is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Device {identity} not found"
        )
    return device


@router.get("", response_model=DeviceListResponse)
async def list_devices(
    controller: Optional[str] = Query(None, description="Only devices of this controller address"),
    service: ProtectService = Depends(get_protect_service),
):
    """List exposed devices, optionally filtered by controller."""
    devices = sorted(
        service.synchronizer.devices(controller),
        key=lambda d: (d.controller_address, d.name.lower()),
    )
    return DeviceListResponse(
        data=[DeviceResponse.from_device(d) for d in devices],
        total=len(devices),
    )


@router.get("/{identity}", response_model=DeviceResponse)
async def get_device(identity: str, service: ProtectService = Depends(get_protect_service)):
    return DeviceResponse.from_device(_get_device_or_404(service, identity))


@router.put("/{identity}/motion-enabled", response_model=DeviceResponse)
async def set_motion_enabled(
    identity: str,
    request: MotionEnabledRequest,
    service: ProtectService = Depends(get_protect_service),
):
    """
    Toggle the local motion filter.

    Same effect as the "Motion Enabled" switch in the Home app; the
    controller is not contacted.
    """
    device = _get_device_or_404(service, identity)
    device.set_motion_enabled(request.enabled)
    return DeviceResponse.from_device(device)


@router.put(
    "/{identity}/led",
    response_model=LedRequestAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def set_led(
    identity: str,
    request: LedRequest,
    service: ProtectService = Depends(get_protect_service),
):
    """
    Toggle the camera status LED.

    The new value is shown immediately and written to the controller in the
    background; a failed write is reverted shortly after.
    """
    device = _get_device_or_404(service, identity)
    device.request_led(request.enabled)
    logger.info(
        f"LED toggle requested for {device.name} via API",
        extra={"event_type": "api_led_request", "camera_id": device.camera_id, "enabled": request.enabled}
    )
    return LedRequestAccepted(
        identity=device.identity,
        pending_led_request=request.enabled,
        led_enabled=device.led_enabled,
    )
