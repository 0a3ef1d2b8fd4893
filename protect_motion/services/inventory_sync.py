"""
Inventory reconciliation.

Mirrors each controller's live camera list into the identity-keyed device
registry: new cameras are exposed, known cameras are refreshed in place,
cameras that disappeared are disposed and unexposed.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from protect_motion.core.logging_config import sanitize_log_value
from protect_motion.core.metrics import update_exposed_devices
from protect_motion.schemas.protect import CameraRecord
from protect_motion.services.camera_device import CameraDeviceState
from protect_motion.services.device_identity import compute_device_identity

logger = logging.getLogger(__name__)

DeviceFactory = Callable[[str, str, CameraRecord], CameraDeviceState]
RemovalHook = Callable[[CameraDeviceState], None]


@dataclass
class ReconcileResult:
    """Devices touched by one reconciliation pass."""
    added: List[CameraDeviceState] = field(default_factory=list)
    refreshed: List[CameraDeviceState] = field(default_factory=list)
    removed: List[CameraDeviceState] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class InventorySynchronizer:
    """
    Owner of the device registry.

    Args:
        device_factory: ``factory(identity, controller_address, camera)``
            building the exposed device and its state machine
        on_removed: Called with each device after it leaves the registry
    """

    def __init__(
        self,
        device_factory: DeviceFactory,
        on_removed: Optional[RemovalHook] = None,
    ):
        self._device_factory = device_factory
        self._on_removed = on_removed
        self._registry: Dict[str, CameraDeviceState] = {}

    def reconcile(
        self,
        controller_address: str,
        live_cameras: Iterable[CameraRecord],
    ) -> ReconcileResult:
        """
        Reconcile one controller's live inventory against the registry.

        An empty ``live_cameras`` removes every device of that controller.
        Only call this with an inventory the controller actually confirmed.
        """
        result = ReconcileResult()
        live_identities = set()
        seen_camera_ids = set()

        for camera in live_cameras:
            if camera.camera_id in seen_camera_ids:
                logger.warning(
                    f"Duplicate camera id {camera.camera_id} in inventory, skipping",
                    extra={"event_type": "inventory_duplicate", "camera_id": camera.camera_id}
                )
                continue
            seen_camera_ids.add(camera.camera_id)

            identity = compute_device_identity(controller_address, camera.camera_id)
            live_identities.add(identity)

            device = self._registry.get(identity)
            if device is None:
                device = self._device_factory(identity, controller_address, camera)
                self._registry[identity] = device
                result.added.append(device)
                logger.info(
                    f"Exposing camera {sanitize_log_value(camera.name)}",
                    extra={
                        "event_type": "device_added",
                        "camera_id": camera.camera_id,
                        "identity": identity,
                    }
                )
            else:
                device.refresh(camera)
                result.refreshed.append(device)

        stale = [
            device for identity, device in self._registry.items()
            if device.controller_address == controller_address and identity not in live_identities
        ]
        for device in stale:
            self._remove(device)
            result.removed.append(device)

        update_exposed_devices(controller_address, len(self.devices(controller_address)))

        logger.info(
            f"Reconciled {controller_address}: {len(result.added)} added, "
            f"{len(result.refreshed)} refreshed, {len(result.removed)} removed",
            extra={
                "event_type": "inventory_reconciled",
                "added": len(result.added),
                "refreshed": len(result.refreshed),
                "removed": len(result.removed),
            }
        )
        return result

    def _remove(self, device: CameraDeviceState) -> None:
        device.dispose()
        self._registry.pop(device.identity, None)
        logger.info(
            f"Removing camera {sanitize_log_value(device.name)}",
            extra={
                "event_type": "device_removed",
                "camera_id": device.camera_id,
                "identity": device.identity,
            }
        )
        if self._on_removed is not None:
            self._on_removed(device)

    def remove_controller(self, controller_address: str) -> List[CameraDeviceState]:
        """Dispose and drop every device of a controller, e.g. on shutdown."""
        removed = []
        for device in self.devices(controller_address):
            self._remove(device)
            removed.append(device)
        update_exposed_devices(controller_address, 0)
        return removed

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, identity: str) -> Optional[CameraDeviceState]:
        return self._registry.get(identity)

    def get_by_camera_id(self, controller_address: str, camera_id: str) -> Optional[CameraDeviceState]:
        """Look up by the controller's own camera id."""
        return self._registry.get(compute_device_identity(controller_address, camera_id))

    def devices(self, controller_address: Optional[str] = None) -> List[CameraDeviceState]:
        if controller_address is None:
            return list(self._registry.values())
        return [d for d in self._registry.values() if d.controller_address == controller_address]

    def __contains__(self, identity: object) -> bool:
        return identity in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    def __iter__(self) -> Iterator[CameraDeviceState]:
        return iter(list(self._registry.values()))
