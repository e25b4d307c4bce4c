"""Process-local cache of the last telemetry seen from each device"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ConnectedDevices:
    """Thread-safe map of deviceId -> last snapshot payload plus lastSeen.

    Never persisted; empty after a restart until devices report again.
    """

    def __init__(self):
        self._devices: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def update(self, device_id: str, payload: Dict[str, Any], seen_at: datetime = None) -> Dict[str, Any]:
        entry = {**payload, "lastSeen": seen_at or datetime.now(timezone.utc)}
        with self._lock:
            self._devices[device_id] = entry
        logger.debug(f"Device {device_id} seen")
        return entry

    def get(self, device_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._devices.get(device_id)
            return dict(entry) if entry is not None else None

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {device_id: dict(entry) for device_id, entry in self._devices.items()}

    def __len__(self):
        with self._lock:
            return len(self._devices)
