"""
HomeKit bridge service

Runs the HAP-python AccessoryDriver and Bridge on the application's event
loop and adds or removes camera accessories as the inventory changes.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from pyhap.accessory import Bridge
from pyhap.accessory_driver import AccessoryDriver

from protect_motion.config.homekit import (
    HomekitConfig,
    generate_pincode,
    get_homekit_config,
    is_valid_pincode,
)
from protect_motion.schemas.protect import CameraRecord
from protect_motion.services.homekit_accessories import CameraAccessory
from protect_motion.services.motion_overrides import MotionOverrideStore

logger = logging.getLogger(__name__)


@dataclass
class HomekitStatus:
    """Status information for the HomeKit bridge."""
    enabled: bool = False
    running: bool = False
    paired: bool = False
    accessory_count: int = 0
    bridge_name: str = "Protect Motion"
    setup_code: Optional[str] = None
    setup_uri: Optional[str] = None
    port: int = 51826
    error: Optional[str] = None


class HomekitService:
    """
    HomeKit accessory bridge.

    Also owns the motion override store shared by every exposed device,
    bridged or headless.

    Lifecycle:
        1. prepare() creates the driver and bridge on the running loop
        2. create_camera_accessory() for each camera (before or after start)
        3. start() publishes the bridge
        4. stop() on shutdown

    Example:
        >>> service = HomekitService()
        >>> service.prepare()
        >>> accessory = service.create_camera_accessory(identity, camera, "10.0.0.1")
        >>> await service.start()
    """

    def __init__(self, config: Optional[HomekitConfig] = None):
        """
        Args:
            config: HomeKit configuration. If None, built from settings.
        """
        self.config = config or get_homekit_config()
        self.overrides = MotionOverrideStore(self.config.overrides_file)
        self._driver: Optional[AccessoryDriver] = None
        self._bridge: Optional[Bridge] = None
        self._accessories: Dict[str, CameraAccessory] = {}
        self._running = False
        self._pincode: Optional[str] = None
        self._error: Optional[str] = None

    @property
    def is_prepared(self) -> bool:
        return self._driver is not None and self._bridge is not None

    @property
    def is_running(self) -> bool:
        """Check if the accessory server is running."""
        return self._running and self._driver is not None

    @property
    def is_paired(self) -> bool:
        """Check if any Home app controller is paired with the bridge."""
        if self._driver is None:
            return False
        return bool(self._driver.state.paired)

    @property
    def accessory_count(self) -> int:
        return len(self._accessories)

    @property
    def pincode(self) -> str:
        """Get the HomeKit pairing code."""
        if self._pincode:
            return self._pincode
        if self.config.pincode and is_valid_pincode(self.config.pincode):
            self._pincode = self.config.pincode
        else:
            if self.config.pincode:
                logger.warning("Configured HOMEKIT_PINCODE is not a valid pairing code, generating one")
            self._pincode = generate_pincode()
        return self._pincode

    def get_setup_uri(self) -> Optional[str]:
        """X-HM:// setup URI for QR pairing, once the bridge exists."""
        if self._bridge is None:
            return None
        return self._bridge.xhm_uri()

    def get_status(self) -> HomekitStatus:
        """
        Get current HomeKit bridge status.

        The setup code and URI are hidden once the bridge is paired.
        """
        paired = self.is_paired
        return HomekitStatus(
            enabled=self.config.enabled,
            running=self.is_running,
            paired=paired,
            accessory_count=self.accessory_count,
            bridge_name=self.config.bridge_name,
            setup_code=None if paired else (self.pincode if self.config.enabled else None),
            setup_uri=None if paired else self.get_setup_uri(),
            port=self.config.port,
            error=self._error,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def prepare(self) -> bool:
        """
        Create the accessory driver and bridge on the running event loop.

        Returns:
            True if the bridge is ready to receive accessories
        """
        if not self.config.enabled:
            logger.info("HomeKit integration is disabled")
            return False

        if self.is_prepared:
            return True

        self.config.ensure_persist_dir()

        driver_kwargs = {
            "port": self.config.port,
            "persist_file": self.config.persist_file,
            "pincode": self.pincode.encode("utf-8"),
            "loop": asyncio.get_running_loop(),
        }

        bind_address = self.config.bind_address
        if bind_address and bind_address != "0.0.0.0":
            driver_kwargs["address"] = bind_address
            logger.info(
                f"HomeKit HAP server binding to specific address: {bind_address}",
                extra={"event_type": "homekit_bind", "bind_address": bind_address}
            )

        self._driver = AccessoryDriver(**driver_kwargs)
        self._bridge = Bridge(self._driver, self.config.bridge_name)
        self._driver.add_accessory(self._bridge)

        logger.info(
            f"HomeKit bridge '{self.config.bridge_name}' prepared on port {self.config.port}",
            extra={"event_type": "homekit_prepared", "port": self.config.port}
        )
        return True

    async def start(self) -> bool:
        """
        Publish the bridge and start serving HAP requests.

        Returns:
            True if started successfully, False otherwise
        """
        if self._running:
            logger.warning("HomeKit service already running")
            return True

        if not self.prepare():
            return False

        try:
            await self._driver.async_start()
        except OSError as e:
            self._error = str(e)
            logger.error(
                f"Failed to start HomeKit service: {e}",
                exc_info=True,
                extra={"event_type": "homekit_start_failed"}
            )
            return False

        self._running = True
        self._error = None
        logger.info(
            f"HomeKit accessory server started on port {self.config.port} "
            f"with {self.accessory_count} cameras",
            extra={
                "event_type": "homekit_started",
                "port": self.config.port,
                "accessory_count": self.accessory_count,
            }
        )
        return True

    async def stop(self) -> None:
        """Stop the HomeKit accessory server."""
        if not self._running:
            return

        logger.info("Stopping HomeKit accessory server")
        try:
            await self._driver.async_stop()
        finally:
            self._running = False
            self._accessories.clear()
            self._driver = None
            self._bridge = None

        logger.info("HomeKit accessory server stopped")

    # =========================================================================
    # Accessories
    # =========================================================================

    def create_camera_accessory(
        self,
        identity: str,
        camera: CameraRecord,
        controller_address: str,
    ) -> CameraAccessory:
        """
        Build the exposed device for a camera and add it to the bridge.

        Raises:
            RuntimeError: If the bridge has not been prepared
        """
        if not self.is_prepared:
            raise RuntimeError("HomeKit bridge not prepared")

        accessory = CameraAccessory(
            self._driver, identity, camera, controller_address, overrides=self.overrides
        )
        self._bridge.add_accessory(accessory.accessory)
        self._accessories[identity] = accessory

        if self._running:
            self._driver.config_changed()

        logger.info(
            f"Added HomeKit accessory for camera: {camera.name}",
            extra={"event_type": "homekit_accessory_added", "aid": accessory.aid}
        )
        return accessory

    def remove_accessory(self, accessory: CameraAccessory) -> bool:
        """
        Drop a camera accessory from the bridge.

        Returns:
            True if the accessory was registered
        """
        if self._accessories.pop(accessory.identity, None) is None:
            return False

        if self._bridge is not None:
            self._bridge.accessories.pop(accessory.aid, None)
            if self._running:
                self._driver.config_changed()

        logger.info(
            f"Removed HomeKit accessory for camera: {accessory.name}",
            extra={"event_type": "homekit_accessory_removed", "aid": accessory.aid}
        )
        return True

    def get_accessory(self, identity: str) -> Optional[CameraAccessory]:
        return self._accessories.get(identity)


# Global service instance
_homekit_service: Optional[HomekitService] = None


def get_homekit_service() -> HomekitService:
    """
    Get the global HomeKit service instance.

    Creates the instance on first call.
    """
    global _homekit_service
    if _homekit_service is None:
        _homekit_service = HomekitService()
    return _homekit_service
