"""
Per-camera state machine.

CameraDeviceState turns the controller's noisy motion timestamps into a clean
on / hold / off signal, applies the local motion filter, and runs the
optimistic update protocol for the camera status LED.

Motion:
    Idle    motion_detected=False, no timer armed
    Active  motion_detected=True, MotionTimer armed for motion_duration

    A qualifying event (timestamp strictly above every timestamp seen so far)
    moves to or stays in Active and restarts the timer. The timer firing
    moves back to Idle. Disabling the local filter forces Idle immediately.

LED:
    Local toggles are applied to the exposed switch at once and written to
    the controller in a background task. A failed write is reverted after a
    short delay. Remote pushes always win: each request and push bumps a
    version counter and a completing write is only applied while its
    version is still current.
"""
import asyncio
import logging
from typing import Any, Optional, Set

from protect_motion.core.metrics import record_led_write, record_motion_event
from protect_motion.schemas.protect import CameraRecord, LedSettings
from protect_motion.services.motion_timer import MotionTimer

logger = logging.getLogger(__name__)


class CameraDeviceState:
    """
    Exposed state for one camera on one controller.

    Attributes:
        identity: Device identity (registry key)
        controller_address: Controller the camera belongs to
        camera: Latest CameraRecord snapshot
        accessory: Exposed device (CameraAccessory or a compatible object)
        motion_detected: Current exposed motion signal
        last_motion_timestamp: Highest motion timestamp seen, never decreases
        led_enabled: Last LED state confirmed by the controller
        pending_led_request: Value of an in-flight local toggle, if any
    """

    def __init__(
        self,
        identity: str,
        controller_address: str,
        camera: CameraRecord,
        accessory: Any,
        client: Any,
        motion_duration: float,
        led_revert_delay: float,
    ):
        self.identity = identity
        self.controller_address = controller_address
        self.camera = camera
        self.accessory = accessory
        self._client = client
        self.motion_duration = motion_duration
        self.led_revert_delay = led_revert_delay

        self.motion_detected = False
        self.last_motion_timestamp = 0
        self.led_enabled = camera.led_enabled
        self.pending_led_request: Optional[bool] = None

        self._motion_timer = MotionTimer(
            self._on_motion_timeout,
            name=f"motion_reset_{camera.camera_id}",
        )
        self._led_version = 0
        # Newest request version whose state the controller is known to hold
        self._led_confirmed = 0
        self._led_tasks: Set[asyncio.Task] = set()
        self._disposed = False

        self.accessory.attach(self)
        self.accessory.set_motion_active(self.motion_enabled)
        self.accessory.set_led_state(self.led_enabled)

    @property
    def name(self) -> str:
        return self.camera.name

    @property
    def camera_id(self) -> str:
        return self.camera.camera_id

    @property
    def motion_enabled(self) -> bool:
        """Local motion filter, stored on the exposed device so it survives refreshes."""
        return self.accessory.motion_enabled

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def motion_timer_armed(self) -> bool:
        return self._motion_timer.is_armed

    # =========================================================================
    # Motion
    # =========================================================================

    def set_motion_enabled(self, enabled: bool) -> None:
        """
        Toggle the local motion filter.

        Disabling while Active cancels the debounce timer and clears the
        signal at once. Enabling has no immediate effect on motion state.
        The controller is never contacted.
        """
        self.accessory.motion_enabled = enabled
        self.accessory.set_motion_active(enabled)

        if not enabled:
            self._motion_timer.cancel()
            if self.motion_detected:
                self.motion_detected = False
                self.accessory.set_motion_detected(False)

        logger.info(
            f"Motion filter for {self.name} {'enabled' if enabled else 'disabled'}",
            extra={
                "event_type": "motion_filter_changed",
                "camera_id": self.camera_id,
                "motion_enabled": enabled,
            }
        )

    def handle_motion_event(self, timestamp: Optional[int]) -> None:
        """
        Handle a lastMotion value from the feed.

        Args:
            timestamp: Motion timestamp in milliseconds, or None when the
                controller cleared it
        """
        if self._disposed or timestamp is None:
            return

        if timestamp <= self.last_motion_timestamp:
            record_motion_event("duplicate")
            logger.debug(
                f"Ignoring stale motion timestamp for {self.name}: "
                f"{timestamp} <= {self.last_motion_timestamp}"
            )
            return

        self.last_motion_timestamp = timestamp

        if not self.motion_enabled:
            record_motion_event("suppressed")
            logger.debug(
                f"Motion on {self.name} suppressed by local filter",
                extra={"event_type": "motion_suppressed", "camera_id": self.camera_id}
            )
            return

        was_active = self.motion_detected
        self._motion_timer.start(self.motion_duration)
        self.motion_detected = True
        if not was_active:
            self.accessory.set_motion_detected(True)

        record_motion_event("triggered")
        logger.info(
            f"Motion detected on {self.name}",
            extra={
                "event_type": "motion_triggered",
                "camera_id": self.camera_id,
                "timestamp": timestamp,
                "extended": was_active,
                "duration_seconds": self.motion_duration,
            }
        )

    def _on_motion_timeout(self) -> None:
        if self._disposed:
            return
        self.motion_detected = False
        self.accessory.set_motion_detected(False)
        logger.debug(
            f"Motion cleared on {self.name}",
            extra={"event_type": "motion_cleared", "camera_id": self.camera_id}
        )

    # =========================================================================
    # Status LED
    # =========================================================================

    def request_led(self, enabled: bool) -> Optional[asyncio.Task]:
        """
        Locally toggle the status LED.

        The exposed switch shows ``enabled`` immediately; the controller write
        runs in the background. Must be called from the event loop.

        Returns:
            The task performing the write, or None if the device was removed
        """
        if self._disposed:
            logger.warning(
                f"LED toggle for removed device {self.name} ignored",
                extra={"camera_id": self.camera_id}
            )
            return None

        self._led_version += 1
        version = self._led_version
        self.pending_led_request = enabled
        self.accessory.set_led_state(enabled)

        task = asyncio.get_running_loop().create_task(
            self._apply_led_request(enabled, version),
            name=f"led_update_{self.camera_id}",
        )
        self._led_tasks.add(task)
        task.add_done_callback(self._led_tasks.discard)
        return task

    def _is_current(self, version: int) -> bool:
        return not self._disposed and version == self._led_version

    async def _apply_led_request(self, enabled: bool, version: int) -> None:
        try:
            success = await self._client.update_camera_led(self.camera, enabled)
        except Exception:
            logger.exception(
                f"LED update for {self.name} raised",
                extra={"event_type": "led_update_error", "camera_id": self.camera_id}
            )
            success = False

        if not self._is_current(version):
            if success and not self._disposed and version > self._led_confirmed:
                # Accepted after a newer toggle was issued but before anything
                # newer was confirmed; the controller now holds this value.
                self._led_confirmed = version
                self.led_enabled = enabled
                if self.pending_led_request is None:
                    self.accessory.set_led_state(enabled)
                record_led_write("success")
                logger.debug(f"Recorded superseded LED result for {self.name}")
                return
            record_led_write("stale")
            logger.debug(f"Discarding superseded LED result for {self.name}")
            return

        if success:
            self._led_confirmed = version
            self.led_enabled = enabled
            self.pending_led_request = None
            record_led_write("success")
            logger.info(
                f"Status LED on {self.name} set to {'on' if enabled else 'off'}",
                extra={"event_type": "led_updated", "camera_id": self.camera_id, "enabled": enabled}
            )
            return

        record_led_write("failure")
        logger.warning(
            f"Failed to set status LED on {self.name}, reverting",
            extra={"event_type": "led_update_failed", "camera_id": self.camera_id, "enabled": enabled}
        )

        await asyncio.sleep(self.led_revert_delay)

        if not self._is_current(version):
            return
        self.pending_led_request = None
        self.accessory.set_led_state(self.led_enabled)

    def handle_led_settings_update(self, settings: LedSettings) -> None:
        """Apply a controller-confirmed LED state. Overrides any pending local toggle."""
        if self._disposed:
            return

        self._led_version += 1
        self._led_confirmed = self._led_version
        self.led_enabled = settings.is_enabled
        self.pending_led_request = None
        self.accessory.set_led_state(settings.is_enabled)

        logger.debug(
            f"Status LED on {self.name} reported {'on' if settings.is_enabled else 'off'}",
            extra={"event_type": "led_pushed", "camera_id": self.camera_id}
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def refresh(self, camera: CameraRecord) -> None:
        """Take a new descriptive snapshot. Motion and LED state are untouched."""
        self.camera = camera
        self.accessory.update_camera(camera)

    def dispose(self) -> None:
        """
        Mark the device removed and cancel its timer.

        In-flight LED writes are left to finish; their results are discarded.
        """
        self._disposed = True
        self._motion_timer.cancel()
        self.motion_detected = False

    def __repr__(self) -> str:
        return (
            f"CameraDeviceState(name={self.name!r}, identity={self.identity!r}, "
            f"motion_detected={self.motion_detected}, led_enabled={self.led_enabled})"
        )
