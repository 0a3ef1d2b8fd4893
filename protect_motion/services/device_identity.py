"""
Stable device identity for exposed cameras.

A camera is the same exposed device across restarts as long as it keeps its
controller address and Protect camera id. Identity is a name-based UUID so the
mapping is deterministic without any stored state.
"""
import uuid

# Namespace for device identities; changing it re-keys every exposed device
DEVICE_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "protect-motion-bridge")

# HAP reserves aid 1 for the bridge itself
MIN_ACCESSORY_ID = 2
MAX_ACCESSORY_ID = 2 ** 32 - 1


def compute_device_identity(controller_address: str, camera_id: str) -> str:
    """
    Compute the identity of a camera on a controller.

    Args:
        controller_address: Controller host as configured
        camera_id: Protect camera id

    Returns:
        UUID string, identical for identical inputs
    """
    return str(uuid.uuid5(DEVICE_NAMESPACE, f"{controller_address}:{camera_id}"))


def accessory_id_for(identity: str) -> int:
    """
    Derive a stable HAP accessory id (aid) from a device identity.

    HomeKit keys automations by aid, so it must not change between runs.
    """
    value = uuid.UUID(identity).int >> 96  # top 32 bits
    span = MAX_ACCESSORY_ID - MIN_ACCESSORY_ID + 1
    return MIN_ACCESSORY_ID + (value % span)
