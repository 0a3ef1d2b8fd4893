"""Pydantic schemas for UniFi Protect controllers, cameras and feed packets"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ControllerConfig(BaseModel):
    """Connection details for one Protect controller"""

    address: str = Field(default="", description="IP address or hostname of the controller")
    username: str = Field(default="", description="Protect local username")
    password: str = Field(default="", description="Protect local password")
    port: int = Field(default=443, ge=1, le=65535, description="HTTPS port")
    verify_ssl: bool = Field(default=False, description="Whether to verify SSL certificates")

    @property
    def is_complete(self) -> bool:
        """True when address and credentials are all present."""
        return bool(self.address and self.username and self.password)

    def __repr__(self) -> str:
        # Password is never rendered
        return f"ControllerConfig(address={self.address!r}, username={self.username!r}, port={self.port})"


class CameraRecord(BaseModel):
    """
    Snapshot of a camera as reported by the controller.

    Identity fields (camera_id, name, type, mac, host) describe the device;
    last_motion, led_enabled and motion_detection_enabled are volatile and
    only meaningful at the moment the snapshot was taken.
    """

    camera_id: str
    name: str
    type: str = ""
    mac: str = ""
    host: str = ""
    last_motion: Optional[int] = None  # Milliseconds since epoch
    led_enabled: bool = True
    motion_detection_enabled: bool = True

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Real-time feed packets
# =============================================================================

class LedSettings(BaseModel):
    """Status LED settings carried in a camera update payload"""

    is_enabled: bool = Field(..., alias="isEnabled")
    blink_rate: Optional[int] = Field(None, alias="blinkRate")

    model_config = ConfigDict(populate_by_name=True)


class EventAction(BaseModel):
    """The action envelope of a feed packet"""

    action: str
    model_key: str = Field(..., alias="modelKey")
    id: str

    model_config = ConfigDict(populate_by_name=True)


class EventPayload(BaseModel):
    """
    Partial camera attributes from a feed packet.

    Only the fields the bridge reacts to are declared; everything else the
    controller sends is ignored. Use ``model_fields_set`` to tell an absent
    field from an explicit null.
    """

    last_motion: Optional[int] = Field(None, alias="lastMotion")
    led_settings: Optional[LedSettings] = Field(None, alias="ledSettings")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ProtectEventPacket(BaseModel):
    """A decoded packet from the controller's real-time feed"""

    action: Optional[EventAction] = None
    payload: Optional[EventPayload] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def is_complete(self) -> bool:
        """Both the action envelope and the payload are present."""
        return self.action is not None and self.payload is not None
