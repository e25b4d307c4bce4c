"""Relay command emitter - builds control messages and publishes them on the bus"""

import logging

from .. import config
from ..models import RelayCommand, RELAY_ACTIONS

logger = logging.getLogger(__name__)


class CommandEmitter:
    """Publishes relay-control commands. Fire-and-forget: no ack is awaited."""

    def __init__(self, mqtt_client, topic: str = None):
        self.mqtt_client = mqtt_client
        self.topic = topic or config.TOPIC_RELAY_CONTROL

    def emit(self, device_id: str, relay: int, action: str, duration: int = None) -> RelayCommand:
        if action not in RELAY_ACTIONS:
            raise ValueError(f"Unsupported relay action: {action}")

        command = RelayCommand(device_id=device_id, relay=int(relay), action=action, duration=duration)
        self.mqtt_client.publish(self.topic, command.to_dict())
        logger.info(f"📤 Relay command: device {device_id}, relay {relay} -> {action}"
                    + (f" for {duration}s" if duration is not None else ""))
        return command
