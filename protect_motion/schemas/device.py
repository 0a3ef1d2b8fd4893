"""Pydantic schemas for the status API"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from protect_motion.services.camera_device import CameraDeviceState


class DeviceResponse(BaseModel):
    """An exposed camera and its current state"""

    identity: str = Field(..., description="Stable device identity")
    aid: int = Field(..., description="HomeKit accessory id")
    controller_address: str
    camera_id: str
    name: str
    type: str
    mac: str
    host: str
    motion_enabled: bool = Field(..., description="Local motion filter")
    motion_detected: bool
    last_motion_timestamp: int = Field(..., description="Highest motion timestamp seen (ms)")
    led_enabled: bool = Field(..., description="Last LED state confirmed by the controller")
    pending_led_request: Optional[bool] = Field(None, description="In-flight local LED toggle")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "identity": "5f0c1b8e-3f7a-5d8e-9a51-2b6c0f4d7e21",
                "aid": 1602296718,
                "controller_address": "192.168.1.1",
                "camera_id": "65a1b2c3d4e5f60718293a4b",
                "name": "Front Door",
                "type": "UVC G4 Doorbell",
                "mac": "F4E2C6A1B2C3",
                "host": "192.168.1.20",
                "motion_enabled": True,
                "motion_detected": False,
                "last_motion_timestamp": 1700000000000,
                "led_enabled": True,
                "pending_led_request": None,
            }
        }
    )

    @classmethod
    def from_device(cls, device: CameraDeviceState) -> "DeviceResponse":
        camera = device.camera
        return cls(
            identity=device.identity,
            aid=device.accessory.aid,
            controller_address=device.controller_address,
            camera_id=camera.camera_id,
            name=camera.name,
            type=camera.type,
            mac=camera.mac,
            host=camera.host,
            motion_enabled=device.motion_enabled,
            motion_detected=device.motion_detected,
            last_motion_timestamp=device.last_motion_timestamp,
            led_enabled=device.led_enabled,
            pending_led_request=device.pending_led_request,
        )


class DeviceListResponse(BaseModel):
    data: List[DeviceResponse]
    total: int


class MotionEnabledRequest(BaseModel):
    """Request body for the local motion filter toggle"""
    enabled: bool


class LedRequest(BaseModel):
    """Request body for the status LED toggle"""
    enabled: bool


class LedRequestAccepted(BaseModel):
    """The LED write was scheduled; the result arrives asynchronously"""
    identity: str
    pending_led_request: bool
    led_enabled: bool = Field(..., description="Last confirmed state at the time of the request")


class ControllerStatusResponse(BaseModel):
    """Connection status of one controller"""
    address: str
    status: str = Field(..., description="connecting, connected, auth_error, error or disconnected")
    last_error: Optional[str] = None
    device_count: int = 0
    connected_at: Optional[datetime] = None
    last_reconciled_at: Optional[datetime] = None


class HomekitStatusResponse(BaseModel):
    """HomeKit bridge status"""
    enabled: bool = Field(..., description="Whether HomeKit is enabled in config")
    running: bool = Field(..., description="Whether bridge is currently running")
    paired: bool = Field(..., description="Whether any iOS devices are paired")
    accessory_count: int = Field(..., description="Number of camera accessories in the bridge")
    bridge_name: str = Field(..., description="Bridge name shown in Apple Home")
    setup_code: Optional[str] = Field(None, description="Pairing code (hidden if paired)")
    setup_uri: Optional[str] = Field(None, description="X-HM:// Setup URI for QR code")
    port: int = Field(..., description="HAP server port")
    error: Optional[str] = Field(None, description="Error message if any")
