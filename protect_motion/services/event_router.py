"""
Real-time feed routing for one controller.

Packets arrive from the controller's websocket feed already decoded into the
``{action, payload}`` shape. The router validates the action envelope, keeps
camera updates only, and hands each interesting payload field that validates
to the device that owns the camera.
"""
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from protect_motion.core.logging_config import clear_controller_context, set_controller_context
from protect_motion.core.metrics import record_feed_packet, record_handler_error
from protect_motion.schemas.protect import EventAction, EventPayload, ProtectEventPacket
from protect_motion.services.camera_device import CameraDeviceState

logger = logging.getLogger(__name__)

CAMERA_MODEL_KEY = "camera"
UPDATE_ACTION = "update"

LAST_MOTION_FIELD = "lastMotion"
LED_SETTINGS_FIELD = "ledSettings"

DeviceLookup = Callable[[str, str], Optional[CameraDeviceState]]


class EventRouter:
    """
    Dispatch feed packets into the device registry.

    Args:
        controller_address: Controller this router is scoped to
        lookup: ``lookup(controller_address, camera_id)`` returning the
            registered device or None (InventorySynchronizer.get_by_camera_id)
    """

    def __init__(self, controller_address: str, lookup: DeviceLookup):
        self.controller_address = controller_address
        self._lookup = lookup

    def route(self, packet: Any) -> None:
        """
        Route one packet. Never raises.

        Args:
            packet: A ProtectEventPacket or a dict in the feed packet shape
        """
        token = set_controller_context(self.controller_address)
        try:
            self._route(packet)
        finally:
            clear_controller_context(token)

    def _route(self, packet: Any) -> None:
        if isinstance(packet, ProtectEventPacket):
            packet = packet.model_dump(by_alias=True, exclude_unset=True)

        if (
            not isinstance(packet, dict)
            or packet.get("action") is None
            or not isinstance(packet.get("payload"), dict)
        ):
            record_feed_packet("dropped_shape")
            logger.debug("Dropping feed packet without action or payload")
            return

        try:
            action = EventAction.model_validate(packet["action"])
        except ValidationError as e:
            record_feed_packet("dropped_shape")
            logger.debug(f"Dropping malformed feed packet: {e.error_count()} validation errors")
            return

        if action.model_key != CAMERA_MODEL_KEY or action.action != UPDATE_ACTION:
            record_feed_packet("dropped_filter")
            return

        device = self._lookup(self.controller_address, action.id)
        if device is None:
            record_feed_packet("dropped_unknown")
            logger.debug(f"No device registered for camera {action.id}")
            return

        record_feed_packet("dispatched")
        payload = packet["payload"]

        # Each field is validated on its own so one bad field never hides another.
        # lastMotion counts when present, even as an explicit null.
        if LAST_MOTION_FIELD in payload:
            fields = self._validate_field(payload, LAST_MOTION_FIELD, action.id)
            if fields is not None:
                self._invoke("motion", device, device.handle_motion_event, fields.last_motion)

        if payload.get(LED_SETTINGS_FIELD) is not None:
            fields = self._validate_field(payload, LED_SETTINGS_FIELD, action.id)
            if fields is not None:
                self._invoke("led", device, device.handle_led_settings_update, fields.led_settings)

    def _validate_field(self, payload: Dict[str, Any], field: str, camera_id: str) -> Optional[EventPayload]:
        try:
            return EventPayload.model_validate({field: payload[field]})
        except ValidationError as e:
            logger.debug(
                f"Ignoring malformed {field} for camera {camera_id}: {e.error_count()} validation errors"
            )
            return None

    def _invoke(self, handler: str, device: CameraDeviceState, func: Callable, value: Any) -> None:
        try:
            func(value)
        except Exception:
            record_handler_error(handler)
            logger.exception(
                f"{handler} handler failed for {device.name}",
                extra={
                    "event_type": "feed_handler_error",
                    "handler": handler,
                    "camera_id": device.camera_id,
                }
            )
