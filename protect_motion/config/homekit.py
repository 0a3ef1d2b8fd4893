"""
HomeKit configuration module

Defines the settings for the HAP-python bridge and pairing code helpers.
"""
import os
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set

from protect_motion.core.config import settings

# Default HomeKit port (standard HAP port)
DEFAULT_HOMEKIT_PORT = 51826

DEFAULT_BRIDGE_NAME = "Protect Motion"

DEFAULT_BIND_ADDRESS = "0.0.0.0"  # Bind to all interfaces by default

# Pairing codes HomeKit refuses
INVALID_PIN_PATTERNS: Set[str] = {
    # All same digits
    "000-00-000", "111-11-111", "222-22-222", "333-33-333",
    "444-44-444", "555-55-555", "666-66-666", "777-77-777",
    "888-88-888", "999-99-999",
    # Sequential patterns
    "123-45-678", "012-34-567", "234-56-789",
    # Common patterns
    "121-21-212", "123-12-312",
}


def is_valid_pincode(code: str) -> bool:
    """
    Validate a PIN code against HomeKit restrictions.

    Args:
        code: PIN code in XXX-XX-XXX format

    Returns:
        True if valid, False if malformed or a restricted pattern
    """
    if code in INVALID_PIN_PATTERNS:
        return False

    parts = code.split("-")
    if len(parts) != 3 or len(parts[0]) != 3 or len(parts[1]) != 2 or len(parts[2]) != 3:
        return False

    digits_only = code.replace("-", "")
    return digits_only.isdigit() and len(digits_only) == 8


def generate_pincode() -> str:
    """
    Generate a random HomeKit pairing code in XXX-XX-XXX format.

    Returns:
        str: Valid pincode, e.g. "123-45-679"
    """
    max_attempts = 100
    for _ in range(max_attempts):
        code = f"{random.randint(0, 999):03d}-{random.randint(0, 99):02d}-{random.randint(0, 999):03d}"
        if is_valid_pincode(code):
            return code

    return "031-45-154"


@dataclass
class HomekitConfig:
    """
    Configuration for the HomeKit bridge.

    Attributes:
        enabled: Whether the bridge is started at all
        port: HAP server port
        bridge_name: Display name of the bridge in the Home app
        persist_dir: Directory for HAP-python's pairing state and the
            motion override file
        pincode: Pairing code in XXX-XX-XXX format; generated when unset
        bind_address: IP address the HAP server binds to
    """
    enabled: bool = True
    port: int = DEFAULT_HOMEKIT_PORT
    bridge_name: str = DEFAULT_BRIDGE_NAME
    persist_dir: str = "data/homekit"
    pincode: Optional[str] = None
    bind_address: str = DEFAULT_BIND_ADDRESS

    @property
    def persist_file(self) -> str:
        """Get the full path to the persistence file."""
        return os.path.join(self.persist_dir, "accessory.state")

    @property
    def overrides_file(self) -> str:
        """Get the full path to the per-device motion override file."""
        return os.path.join(self.persist_dir, "motion_overrides.json")

    def ensure_persist_dir(self) -> None:
        """Create persistence directory if it doesn't exist."""
        Path(self.persist_dir).mkdir(parents=True, exist_ok=True)


def get_homekit_config() -> HomekitConfig:
    """Build the HomeKit configuration from application settings."""
    return HomekitConfig(
        enabled=settings.HOMEKIT_ENABLED,
        port=settings.HOMEKIT_PORT,
        bridge_name=settings.HOMEKIT_BRIDGE_NAME,
        persist_dir=settings.HOMEKIT_PERSIST_DIR,
        pincode=settings.HOMEKIT_PINCODE,
        bind_address=settings.HOMEKIT_BIND_ADDRESS,
    )
