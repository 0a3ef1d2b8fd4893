"""
UniFi Protect controller client.

Thin wrapper around uiprotect's ProtectApiClient that:
- Connects (login + bootstrap) with a timeout and maps failures to
  ProtectAuthError / ProtectApiError
- Snapshots bootstrap cameras as CameraRecord
- Translates websocket messages into the ``{action, payload}`` feed packet
  shape and fans them out to subscribed handlers
- Writes the camera status LED
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import aiohttp
from uiprotect import ProtectApiClient
from uiprotect.exceptions import BadRequest, NotAuthorized, NvrError

from protect_motion.core.exceptions import ProtectApiError, ProtectAuthError
from protect_motion.schemas.protect import CameraRecord, ControllerConfig

logger = logging.getLogger(__name__)

# Connection timeout in seconds
CONNECTION_TIMEOUT = 10.0

MessageHandler = Callable[[Dict[str, Any]], None]


def _to_millis(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return int(value)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def camera_record_from_protect(camera: Any) -> CameraRecord:
    """Snapshot a uiprotect Camera as a CameraRecord."""
    camera_id = str(camera.id)
    led_settings = getattr(camera, "led_settings", None)
    recording_settings = getattr(camera, "recording_settings", None)
    motion_detection = getattr(recording_settings, "enable_motion_detection", None)
    host = getattr(camera, "host", None)

    return CameraRecord(
        camera_id=camera_id,
        name=camera.name or f"Camera {camera_id[:8]}",
        type=str(camera.type) if getattr(camera, "type", None) else "",
        mac=getattr(camera, "mac", None) or "",
        host=str(host) if host else "",
        last_motion=_to_millis(getattr(camera, "last_motion", None)),
        led_enabled=getattr(led_settings, "is_enabled", True),
        motion_detection_enabled=True if motion_detection is None else bool(motion_detection),
    )


def packet_from_ws_message(msg: Any) -> Optional[Dict[str, Any]]:
    """
    Translate a uiprotect WSSubscriptionMessage into a feed packet.

    Only the fields the bridge routes on are carried over: the action
    envelope, ``lastMotion`` and ``ledSettings``. Returns None for messages
    without an object.
    """
    new_obj = getattr(msg, "new_obj", None)
    if new_obj is None:
        return None

    model_key = _enum_value(getattr(new_obj, "model", None))
    obj_id = getattr(new_obj, "id", None)
    if model_key is None or obj_id is None:
        return None

    changed = getattr(msg, "changed_data", None) or {}
    payload: Dict[str, Any] = {}

    if "last_motion" in changed:
        payload["lastMotion"] = _to_millis(changed["last_motion"])

    if "led_settings" in changed:
        led_settings = getattr(new_obj, "led_settings", None)
        if led_settings is not None:
            payload["ledSettings"] = {"isEnabled": led_settings.is_enabled}
            blink_rate = getattr(led_settings, "blink_rate", None)
            if blink_rate is not None:
                payload["ledSettings"]["blinkRate"] = blink_rate

    return {
        "action": {
            "action": str(_enum_value(msg.action)),
            "modelKey": str(model_key),
            "id": str(obj_id),
        },
        "payload": payload,
    }


class ProtectClient:
    """
    Connection to one Protect controller.

    Attributes:
        controller: Connection details
    """

    def __init__(self, controller: ControllerConfig):
        self.controller = controller
        self._api: Optional[ProtectApiClient] = None
        self._handlers: List[MessageHandler] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def address(self) -> str:
        return self.controller.address

    @property
    def is_connected(self) -> bool:
        return self._api is not None

    async def connect(self) -> None:
        """
        Log in and load the bootstrap.

        Raises:
            ProtectAuthError: Credentials rejected
            ProtectApiError: Any other failure
        """
        logger.info(
            f"Connecting to UniFi Protect controller at {self.address}",
            extra={"event_type": "protect_connect_start", "port": self.controller.port}
        )

        api = ProtectApiClient(
            host=self.controller.address,
            port=self.controller.port,
            username=self.controller.username,
            password=self.controller.password,
            verify_ssl=self.controller.verify_ssl,
        )

        try:
            # uiprotect handles login internally in update()
            await asyncio.wait_for(api.update(), timeout=CONNECTION_TIMEOUT)

        except asyncio.TimeoutError:
            await self._close_quietly(api)
            raise ProtectApiError(
                f"Connection to {self.address} timed out after {int(CONNECTION_TIMEOUT)} seconds"
            )

        except NotAuthorized:
            await self._close_quietly(api)
            raise ProtectAuthError(f"Failed to login to controller at {self.address}")

        except aiohttp.ClientConnectorCertificateError:
            await self._close_quietly(api)
            raise ProtectApiError(f"SSL certificate verification failed for {self.address}")

        except aiohttp.ClientConnectorError:
            await self._close_quietly(api)
            raise ProtectApiError(f"Host unreachable: {self.address}")

        except (BadRequest, NvrError) as e:
            await self._close_quietly(api)
            raise ProtectApiError(f"Controller error from {self.address}: {type(e).__name__}")

        except asyncio.CancelledError:
            await self._close_quietly(api)
            raise

        except Exception as e:
            await self._close_quietly(api)
            raise ProtectApiError(
                f"Error connecting to {self.address}: {type(e).__name__}: {e}"
            ) from e

        self._api = api
        logger.info(
            f"Connected to UniFi Protect controller at {self.address}",
            extra={"event_type": "protect_connect_success"}
        )

    def _require_api(self) -> ProtectApiClient:
        if self._api is None:
            raise ProtectApiError(f"Not connected to {self.address}")
        return self._api

    @property
    def cameras(self) -> List[CameraRecord]:
        """Cameras in the current bootstrap."""
        api = self._require_api()
        bootstrap = api.bootstrap
        if bootstrap is None or not bootstrap.cameras:
            return []
        return [camera_record_from_protect(camera) for camera in bootstrap.cameras.values()]

    async def refresh(self) -> None:
        """
        Reload the bootstrap.

        Raises:
            ProtectAuthError: Session rejected
            ProtectApiError: Any other failure
        """
        api = self._require_api()
        try:
            await asyncio.wait_for(api.update(), timeout=CONNECTION_TIMEOUT)
        except asyncio.TimeoutError:
            raise ProtectApiError(f"Bootstrap refresh from {self.address} timed out")
        except NotAuthorized:
            raise ProtectAuthError(f"Session rejected by {self.address}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ProtectApiError(
                f"Bootstrap refresh from {self.address} failed: {type(e).__name__}"
            ) from e

    def on_message(self, handler: MessageHandler) -> None:
        """Subscribe a handler to the real-time feed."""
        self._handlers.append(handler)
        if self._unsubscribe is None:
            self._unsubscribe = self._require_api().subscribe_websocket(self._dispatch)

    def _dispatch(self, msg: Any) -> None:
        try:
            packet = packet_from_ws_message(msg)
        except Exception:
            logger.exception(
                "Failed to translate websocket message",
                extra={"event_type": "protect_ws_translate_error"}
            )
            return

        if packet is None:
            return

        for handler in list(self._handlers):
            try:
                handler(packet)
            except Exception:
                logger.exception(
                    "Error in message handler",
                    extra={"event_type": "protect_ws_handler_error"}
                )

    async def update_camera_led(self, camera: CameraRecord, enabled: bool) -> bool:
        """
        Write the status LED setting of a camera.

        Returns:
            True when the controller accepted the change
        """
        if self._api is None:
            logger.error(f"Cannot update LED on {camera.name}: not connected")
            return False

        bootstrap = self._api.bootstrap
        protect_camera = bootstrap.cameras.get(camera.camera_id) if bootstrap else None
        if protect_camera is None:
            logger.error(
                f"Cannot update LED on {camera.name}: camera not in bootstrap",
                extra={"camera_id": camera.camera_id}
            )
            return False

        try:
            await protect_camera.set_status_light(enabled)
        except (BadRequest, NotAuthorized, NvrError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(
                f"Error updating LED for {camera.name}: {type(e).__name__}",
                extra={"event_type": "protect_led_update_error", "camera_id": camera.camera_id}
            )
            return False

        logger.info(f"LED {'enabled' if enabled else 'disabled'} for {camera.name}")
        return True

    async def disconnect(self) -> None:
        """Unsubscribe from the feed and close the session. Safe to call when not connected."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._handlers.clear()

        api, self._api = self._api, None
        if api is not None:
            await self._close_quietly(api)
            logger.info(
                f"Disconnected from {self.address}",
                extra={"event_type": "protect_disconnect_complete"}
            )

    async def _close_quietly(self, api: ProtectApiClient) -> None:
        try:
            await api.close_session()
        except Exception as e:
            logger.debug(f"Error closing session for {self.address}: {type(e).__name__}")
