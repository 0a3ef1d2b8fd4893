"""
Persisted local motion overrides.

The "Motion Enabled" switch is a local filter that the controller never sees,
so its value is kept in a small JSON file next to HAP-python's pairing state,
keyed by device identity. A camera that keeps its identity across restarts
comes back with the override it had.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class MotionOverrideStore:
    """
    JSON-backed map of device identity to ``motion_enabled``.

    The file is read lazily on first access and rewritten on every change.
    An unreadable file is treated as empty; a failed write is logged and the
    in-memory value is kept.
    """

    def __init__(self, path: str):
        self.path = path
        self._values: Optional[Dict[str, bool]] = None

    def _load(self) -> Dict[str, bool]:
        if self._values is not None:
            return self._values

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            data = {}
        except (OSError, ValueError) as e:
            logger.warning(
                f"Could not read motion overrides from {self.path}: {e}",
                extra={"event_type": "motion_overrides_read_error"}
            )
            data = {}

        if not isinstance(data, dict):
            data = {}
        self._values = {str(k): bool(v) for k, v in data.items()}
        return self._values

    def _save(self) -> None:
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

            # Write atomically (write to temp, then rename)
            temp_fd, temp_path = tempfile.mkstemp(dir=Path(self.path).parent, suffix=".tmp")
            try:
                with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                    json.dump(self._values, f, indent=2, sort_keys=True)
                os.replace(temp_path, self.path)
            except OSError:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        except OSError as e:
            logger.warning(
                f"Could not write motion overrides to {self.path}: {e}",
                extra={"event_type": "motion_overrides_write_error"}
            )

    def get(self, identity: str, default: bool = True) -> bool:
        return self._load().get(identity, default)

    def set(self, identity: str, enabled: bool) -> None:
        values = self._load()
        if values.get(identity) == enabled:
            return
        values[identity] = bool(enabled)
        self._save()

    def discard(self, identity: str) -> None:
        """Forget a device's override, e.g. when its camera leaves the inventory."""
        values = self._load()
        if values.pop(identity, None) is not None:
            self._save()

    def __len__(self) -> int:
        return len(self._load())
