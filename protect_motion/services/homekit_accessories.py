"""
Exposed devices for Protect cameras.

Each camera becomes a bridged HAP-python accessory with three services:

    MotionSensor              MotionDetected (read-only), StatusActive mirrors the filter
    Switch "Motion Enabled"   local motion filter, never sent to the controller
    Switch "Status LED"       camera status light, written to the controller

An exposed device owns the persisted local override (``motion_enabled``) and
holds a back-reference to the CameraDeviceState that drives it. When the
HomeKit bridge is disabled, HeadlessCameraAccessory keeps the same contract
without a HAP accessory so the status API can still drive the cameras.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, TYPE_CHECKING

from pyhap.accessory import Accessory
from pyhap.const import CATEGORY_SENSOR

from protect_motion.schemas.protect import CameraRecord
from protect_motion.services.device_identity import accessory_id_for
from protect_motion.services.motion_overrides import MotionOverrideStore

if TYPE_CHECKING:
    from protect_motion.services.camera_device import CameraDeviceState

logger = logging.getLogger(__name__)

MANUFACTURER = "Ubiquiti"
DEFAULT_MODEL = "UniFi Camera"

MOTION_SWITCH_NAME = "Motion Enabled"
LED_SWITCH_NAME = "Status LED"


class ExposedCamera(ABC):
    """
    State shared by every exposed device flavor.

    Attributes:
        identity: Device identity this device is keyed by
        controller_address: Controller the camera belongs to
        context: Long-lived per-device data; ``motion_enabled`` defaults to
            True on creation and is only changed by the local toggle
        overrides: Store the ``motion_enabled`` override is persisted in;
            None keeps it in memory only
        device_state: Owning CameraDeviceState, set by ``attach``
    """

    def __init__(
        self,
        identity: str,
        camera: CameraRecord,
        controller_address: str,
        overrides: Optional[MotionOverrideStore] = None,
    ):
        self.identity = identity
        self.controller_address = controller_address
        self.overrides = overrides
        self.context: Dict[str, Any] = {
            "camera": camera,
            "controller_address": controller_address,
            "motion_enabled": overrides.get(identity) if overrides is not None else True,
        }
        self.device_state: Optional["CameraDeviceState"] = None

    @property
    def aid(self) -> int:
        return accessory_id_for(self.identity)

    @property
    def camera(self) -> CameraRecord:
        return self.context["camera"]

    @property
    def name(self) -> str:
        return self.camera.name

    @property
    def motion_enabled(self) -> bool:
        return self.context.get("motion_enabled", True)

    @motion_enabled.setter
    def motion_enabled(self, value: bool) -> None:
        self.context["motion_enabled"] = bool(value)
        if self.overrides is not None:
            self.overrides.set(self.identity, bool(value))

    def forget_motion_override(self) -> None:
        """Drop the persisted override once the camera has left the inventory."""
        if self.overrides is not None:
            self.overrides.discard(self.identity)

    def attach(self, device_state: "CameraDeviceState") -> None:
        """Link the exposed device to the state machine that drives it."""
        self.device_state = device_state

    def update_camera(self, camera: CameraRecord) -> None:
        """Refresh descriptive information. The motion override is left alone."""
        self.context["camera"] = camera

    @abstractmethod
    def set_motion_detected(self, detected: bool) -> None:
        """Drive the exposed motion signal."""

    @abstractmethod
    def set_motion_active(self, enabled: bool) -> None:
        """Reflect the local motion filter."""

    @abstractmethod
    def set_led_state(self, enabled: bool) -> None:
        """Show the status LED value."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, identity={self.identity!r}, aid={self.aid})"


class HeadlessCameraAccessory(ExposedCamera):
    """Exposed device that only records the signals it is given."""

    def __init__(
        self,
        identity: str,
        camera: CameraRecord,
        controller_address: str,
        overrides: Optional[MotionOverrideStore] = None,
    ):
        super().__init__(identity, camera, controller_address, overrides)
        self.motion_detected = False
        self.motion_active = self.motion_enabled
        self.led_on = camera.led_enabled

    def set_motion_detected(self, detected: bool) -> None:
        self.motion_detected = detected

    def set_motion_active(self, enabled: bool) -> None:
        self.motion_active = enabled

    def set_led_state(self, enabled: bool) -> None:
        self.led_on = enabled


class CameraAccessory(ExposedCamera):
    """Exposed device backed by a bridged HAP-python accessory."""

    def __init__(
        self,
        driver,
        identity: str,
        camera: CameraRecord,
        controller_address: str,
        overrides: Optional[MotionOverrideStore] = None,
    ):
        super().__init__(identity, camera, controller_address, overrides)

        self._accessory = Accessory(driver, camera.name, aid=accessory_id_for(identity))
        self._accessory.category = CATEGORY_SENSOR

        info = self._accessory.get_service("AccessoryInformation")
        self._char_model = info.configure_char("Model", value=camera.type or DEFAULT_MODEL)
        self._char_serial = info.configure_char("SerialNumber", value=camera.mac or camera.camera_id)
        info.configure_char("Manufacturer", value=MANUFACTURER)

        motion_service = self._accessory.add_preload_service(
            "MotionSensor", chars=["StatusActive"]
        )
        self._char_motion_detected = motion_service.configure_char("MotionDetected", value=False)
        self._char_status_active = motion_service.configure_char("StatusActive", value=self.motion_enabled)

        motion_switch = self._accessory.add_preload_service(
            "Switch", chars=["Name"], unique_id="motion-switch"
        )
        motion_switch.configure_char("Name", value=MOTION_SWITCH_NAME)
        self._char_motion_enabled = motion_switch.configure_char(
            "On", value=self.motion_enabled, setter_callback=self._on_motion_enabled_set
        )

        led_switch = self._accessory.add_preload_service(
            "Switch", chars=["Name"], unique_id="led-switch"
        )
        led_switch.configure_char("Name", value=LED_SWITCH_NAME)
        self._char_led = led_switch.configure_char(
            "On", value=camera.led_enabled, setter_callback=self._on_led_set
        )

        logger.debug(
            f"Created HomeKit accessory for camera: {camera.name}",
            extra={"camera_id": camera.camera_id, "identity": identity}
        )

    @property
    def accessory(self) -> Any:
        """Get the underlying HAP-python Accessory."""
        return self._accessory

    def update_camera(self, camera: CameraRecord) -> None:
        super().update_camera(camera)
        self._char_model.set_value(camera.type or DEFAULT_MODEL)
        self._char_serial.set_value(camera.mac or camera.camera_id)

    # =========================================================================
    # Outbound: state machine -> HomeKit
    # =========================================================================

    def set_motion_detected(self, detected: bool) -> None:
        self._char_motion_detected.set_value(detected)

    def set_motion_active(self, enabled: bool) -> None:
        self._char_status_active.set_value(enabled)
        if self._char_motion_enabled.value != enabled:
            self._char_motion_enabled.set_value(enabled)

    def set_led_state(self, enabled: bool) -> None:
        if self._char_led.value != enabled:
            self._char_led.set_value(enabled)

    # =========================================================================
    # Inbound: HomeKit -> state machine
    # =========================================================================

    def _on_motion_enabled_set(self, value: Any) -> None:
        if self.device_state is None:
            self.motion_enabled = bool(value)
            return
        self.device_state.set_motion_enabled(bool(value))

    def _on_led_set(self, value: Any) -> None:
        if self.device_state is None:
            logger.warning(
                f"LED toggle for {self.name} ignored: accessory not attached",
                extra={"identity": self.identity}
            )
            return
        self.device_state.request_led(bool(value))
