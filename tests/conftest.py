"""Pytest fixtures and configuration for test suite

This module provides:
1. Factory functions for creating test objects with sensible defaults
2. Pytest fixtures that use the factory functions

Factory Functions:
    - make_camera_record(**overrides) -> CameraRecord
    - make_packet(camera_id, ...) -> dict in the feed packet shape
    - make_device(camera, ...) -> CameraDeviceState wired to a RecordingAccessory
"""
from typing import Any, Dict, Optional

import pytest

from protect_motion.schemas.protect import CameraRecord
from protect_motion.services.camera_device import CameraDeviceState
from protect_motion.services.device_identity import compute_device_identity
from tests.mocks.protect_mocks import MockProtectClient, RecordingAccessory

CONTROLLER_ADDRESS = "192.168.1.1"

_UNSET = object()


# =============================================================================
# Factory Functions for Test Objects
# =============================================================================

def make_camera_record(
    camera_id: str = "cam-001",
    name: str = "Front Door",
    **overrides
) -> CameraRecord:
    """
    Factory function to create CameraRecord instances for testing.

    Example:
        camera = make_camera_record(name="Garage", led_enabled=False)
    """
    fields = {
        "camera_id": camera_id,
        "name": name,
        "type": "UVC G4 Bullet",
        "mac": f"MAC{camera_id.upper().replace('-', '')}",
        "host": "192.168.1.20",
        "led_enabled": True,
    }
    fields.update(overrides)
    return CameraRecord(**fields)


def make_packet(
    camera_id: str = "cam-001",
    model_key: str = "camera",
    action: str = "update",
    last_motion: Any = _UNSET,
    led_enabled: Optional[bool] = None,
    **payload_extra
) -> Dict[str, Any]:
    """
    Factory for feed packets.

    ``last_motion`` is only included when passed (None produces an explicit
    null); ``led_enabled`` adds a ledSettings object.
    """
    payload: Dict[str, Any] = dict(payload_extra)
    if last_motion is not _UNSET:
        payload["lastMotion"] = last_motion
    if led_enabled is not None:
        payload["ledSettings"] = {"isEnabled": led_enabled}
    return {
        "action": {"action": action, "modelKey": model_key, "id": camera_id},
        "payload": payload,
    }


def make_device(
    camera: Optional[CameraRecord] = None,
    client: Any = None,
    controller_address: str = CONTROLLER_ADDRESS,
    motion_duration: float = 0.2,
    led_revert_delay: float = 0.05,
) -> CameraDeviceState:
    """Factory for a CameraDeviceState backed by a RecordingAccessory."""
    camera = camera or make_camera_record()
    identity = compute_device_identity(controller_address, camera.camera_id)
    return CameraDeviceState(
        identity=identity,
        controller_address=controller_address,
        camera=camera,
        accessory=RecordingAccessory(identity, camera, controller_address),
        client=client or MockProtectClient(),
        motion_duration=motion_duration,
        led_revert_delay=led_revert_delay,
    )


# =============================================================================
# Pytest Fixtures
# =============================================================================

@pytest.fixture
def camera_record():
    return make_camera_record()


@pytest.fixture
def mock_client():
    return MockProtectClient()


@pytest.fixture
def device(camera_record, mock_client):
    """A device with a 0.2s debounce window and 0.05s LED revert delay."""
    return make_device(camera=camera_record, client=mock_client)
