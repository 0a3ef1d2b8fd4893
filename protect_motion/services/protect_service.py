"""
UniFi Protect controller lifecycle

For every configured controller:
- Connect (login + bootstrap) through ProtectClient
- Reconcile the bootstrap cameras into the shared device registry
- Subscribe an EventRouter to the controller's real-time feed
- Optionally refresh the bootstrap and re-reconcile on an interval

Controllers are independent: a failure on one never touches another, and a
failed connect or refresh leaves that controller's devices as they were.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from protect_motion.core.config import settings
from protect_motion.core.exceptions import ProtectApiError, ProtectAuthError
from protect_motion.core.logging_config import clear_controller_context, set_controller_context
from protect_motion.core.metrics import record_reconcile
from protect_motion.schemas.protect import CameraRecord, ControllerConfig
from protect_motion.services.camera_device import CameraDeviceState
from protect_motion.services.event_router import EventRouter
from protect_motion.services.homekit_accessories import HeadlessCameraAccessory
from protect_motion.services.homekit_service import HomekitService, get_homekit_service
from protect_motion.services.inventory_sync import InventorySynchronizer, ReconcileResult
from protect_motion.services.protect_client import ProtectClient

logger = logging.getLogger(__name__)

STATUS_CONNECTING = "connecting"
STATUS_CONNECTED = "connected"
STATUS_AUTH_ERROR = "auth_error"
STATUS_ERROR = "error"
STATUS_DISCONNECTED = "disconnected"


class ControllerConnection:
    """Bookkeeping for one configured controller."""

    def __init__(self, controller: ControllerConfig):
        self.controller = controller
        self.client: Optional[Any] = None
        self.router: Optional[EventRouter] = None
        self.status = STATUS_DISCONNECTED
        self.last_error: Optional[str] = None
        self.connected_at: Optional[datetime] = None
        self.last_reconciled_at: Optional[datetime] = None


class ProtectService:
    """
    Service managing the connections to every configured controller.

    Attributes:
        synchronizer: The InventorySynchronizer owning the device registry
    """

    def __init__(
        self,
        homekit_service: Optional[HomekitService] = None,
        motion_duration: float = settings.MOTION_DURATION,
        led_revert_delay: float = settings.LED_REVERT_DELAY_SECONDS,
        refresh_interval: float = settings.PROTECT_REFRESH_INTERVAL_SECONDS,
        client_factory: Callable[[ControllerConfig], Any] = ProtectClient,
    ):
        self._homekit = homekit_service
        self.motion_duration = motion_duration
        self.led_revert_delay = led_revert_delay
        self.refresh_interval = refresh_interval
        self._client_factory = client_factory

        self._connections: Dict[str, ControllerConnection] = {}
        self._refresh_task: Optional[asyncio.Task] = None

        self.synchronizer = InventorySynchronizer(
            device_factory=self._create_device,
            on_removed=self._on_device_removed,
        )

    # =========================================================================
    # Device factory
    # =========================================================================

    def _create_device(
        self,
        identity: str,
        controller_address: str,
        camera: CameraRecord,
    ) -> CameraDeviceState:
        if self._homekit is not None and self._homekit.is_prepared:
            accessory = self._homekit.create_camera_accessory(identity, camera, controller_address)
        else:
            overrides = self._homekit.overrides if self._homekit is not None else None
            accessory = HeadlessCameraAccessory(identity, camera, controller_address, overrides)

        connection = self._connections.get(controller_address)
        return CameraDeviceState(
            identity=identity,
            controller_address=controller_address,
            camera=camera,
            accessory=accessory,
            client=connection.client if connection is not None else None,
            motion_duration=self.motion_duration,
            led_revert_delay=self.led_revert_delay,
        )

    def _on_device_removed(self, device: CameraDeviceState) -> None:
        if self._homekit is not None and not isinstance(device.accessory, HeadlessCameraAccessory):
            self._homekit.remove_accessory(device.accessory)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, controllers: Iterable[ControllerConfig]) -> None:
        """
        Connect every configured controller and start the refresh loop.

        Incomplete controller entries are skipped with a warning.
        """
        controllers = list(controllers)
        if not controllers:
            logger.warning(
                "No UniFi Protect controllers configured",
                extra={"event_type": "protect_no_controllers"}
            )

        for controller in controllers:
            if not controller.is_complete:
                logger.warning(
                    f"Skipping controller {controller.address or '<no address>'}: "
                    "address, username and password are required",
                    extra={"event_type": "protect_controller_incomplete"}
                )
                continue
            if controller.address in self._connections:
                logger.warning(f"Controller {controller.address} configured twice, skipping")
                continue
            await self.connect_controller(controller)

        if self.refresh_interval > 0 and self._refresh_task is None:
            self._refresh_task = asyncio.create_task(
                self._refresh_loop(), name="protect_refresh"
            )

    async def connect_controller(self, controller: ControllerConfig) -> bool:
        """
        Connect one controller, reconcile its cameras and subscribe to its feed.

        Returns:
            True if the controller is connected
        """
        address = controller.address
        connection = self._connections.get(address)
        if connection is None:
            connection = ControllerConnection(controller)
            self._connections[address] = connection

        token = set_controller_context(address)
        try:
            connection.status = STATUS_CONNECTING
            client = self._client_factory(controller)
            connection.client = client

            try:
                await client.connect()
            except ProtectAuthError as e:
                connection.status = STATUS_AUTH_ERROR
                connection.last_error = e.message
                record_reconcile("auth_error")
                logger.error(
                    f"Authentication failed for controller {address}: {e.message}",
                    extra={"event_type": "protect_auth_error"}
                )
                return False
            except ProtectApiError as e:
                connection.status = STATUS_ERROR
                connection.last_error = e.message
                record_reconcile("api_error")
                logger.warning(
                    f"Failed to connect to controller {address}: {e.message}",
                    extra={"event_type": "protect_connect_error"}
                )
                return False

            connection.status = STATUS_CONNECTED
            connection.last_error = None
            connection.connected_at = datetime.now(timezone.utc)

            self._reconcile(connection, client.cameras)

            connection.router = EventRouter(address, self.synchronizer.get_by_camera_id)
            client.on_message(connection.router.route)

            logger.info(
                f"Controller {address} ready with "
                f"{len(self.synchronizer.devices(address))} cameras",
                extra={"event_type": "protect_controller_ready"}
            )
            return True
        finally:
            clear_controller_context(token)

    def _reconcile(self, connection: ControllerConnection, cameras: List[CameraRecord]) -> ReconcileResult:
        result = self.synchronizer.reconcile(connection.controller.address, cameras)
        for device in result.removed:
            device.accessory.forget_motion_override()
        connection.last_reconciled_at = datetime.now(timezone.utc)
        record_reconcile("success")
        return result

    async def refresh_controller(self, address: str) -> Optional[ReconcileResult]:
        """
        Reload one controller's bootstrap and reconcile it.

        A failure abandons this pass and leaves the devices untouched.

        Returns:
            The reconcile result, or None if the pass was abandoned
        """
        connection = self._connections.get(address)
        if connection is None or connection.status != STATUS_CONNECTED:
            return None

        token = set_controller_context(address)
        try:
            try:
                await connection.client.refresh()
                cameras = connection.client.cameras
            except ProtectAuthError as e:
                connection.last_error = e.message
                record_reconcile("auth_error")
                logger.error(
                    f"Refresh rejected by controller {address}: {e.message}",
                    extra={"event_type": "protect_refresh_auth_error"}
                )
                return None
            except ProtectApiError as e:
                connection.last_error = e.message
                record_reconcile("api_error")
                logger.warning(
                    f"Refresh of controller {address} failed: {e.message}",
                    extra={"event_type": "protect_refresh_error"}
                )
                return None

            return self._reconcile(connection, cameras)
        finally:
            clear_controller_context(token)

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            for address in list(self._connections):
                try:
                    await self.refresh_controller(address)
                except Exception:
                    logger.exception(
                        f"Unexpected error refreshing controller {address}",
                        extra={"event_type": "protect_refresh_unexpected_error"}
                    )

    async def stop(self) -> None:
        """Stop refreshing, disconnect every controller and dispose every device."""
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

        for address, connection in list(self._connections.items()):
            if connection.client is not None:
                try:
                    await connection.client.disconnect()
                except Exception as e:
                    logger.warning(
                        f"Error disconnecting controller {address}: {type(e).__name__}",
                        extra={"event_type": "protect_disconnect_error"}
                    )
            self.synchronizer.remove_controller(address)
            connection.status = STATUS_DISCONNECTED
            connection.router = None

        logger.info("All Protect controllers stopped")

    # =========================================================================
    # Status
    # =========================================================================

    def get_connection_status(self, address: str) -> Optional[Dict[str, Any]]:
        """
        Get current connection status for a controller.

        Returns:
            Dict with status, last_error, device_count and connected_at,
            or None for an unknown controller
        """
        connection = self._connections.get(address)
        if connection is None:
            return None
        return {
            "address": address,
            "status": connection.status,
            "last_error": connection.last_error,
            "device_count": len(self.synchronizer.devices(address)),
            "connected_at": connection.connected_at,
            "last_reconciled_at": connection.last_reconciled_at,
        }

    def get_all_connection_statuses(self) -> Dict[str, Dict[str, Any]]:
        """Get connection status for all tracked controllers."""
        return {address: self.get_connection_status(address) for address in self._connections}


# Singleton instance for the service
_protect_service: Optional[ProtectService] = None


def get_protect_service() -> ProtectService:
    """Get the singleton ProtectService instance."""
    global _protect_service
    if _protect_service is None:
        _protect_service = ProtectService(homekit_service=get_homekit_service())
    return _protect_service
