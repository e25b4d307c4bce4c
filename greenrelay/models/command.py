"""Relay control command model"""

from dataclasses import dataclass
from typing import Optional

RELAY_ACTIONS = ("on", "off", "toggle")


@dataclass
class RelayCommand:
    """Control command published to a device"""
    device_id: str
    relay: int
    action: str  # "on", "off", "toggle"
    duration: Optional[int] = None  # seconds

    def to_dict(self):
        """Convert to the wire payload"""
        payload = {
            "deviceId": self.device_id,
            "relay": self.relay,
            "action": self.action,
        }
        if self.duration is not None:
            payload["duration"] = self.duration
        return payload
