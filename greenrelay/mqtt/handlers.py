"""MQTT ingestion handlers - registration, relay status and device status"""

import logging
from typing import Any, Dict

from .. import config

logger = logging.getLogger(__name__)

RELAY_STATUS_EVENT = "relay_status"
DEVICE_STATUS_EVENT = "device_status"


class IngestionHandlers:
    """Reconcile bus messages against the store and notify live sessions.

    Handlers are idempotent under at-least-once delivery and never raise:
    failures are logged and the message is dropped.
    """

    def __init__(self, accounts, device_status, fanout, connected_devices):
        self.accounts = accounts
        self.device_status = device_status
        self.fanout = fanout
        self.connected_devices = connected_devices
        logger.info("Ingestion handlers initialized")

    def register(self, mqtt_client):
        """Attach handlers to their topics"""
        mqtt_client.register_handler(config.TOPIC_REGISTRATION, self.handle_registration)
        mqtt_client.register_handler(config.TOPIC_RELAY_STATUS, self.handle_relay_status)
        mqtt_client.register_handler(config.TOPIC_DEVICE_STATUS, self.handle_device_status)

    async def handle_registration(self, payload: Dict[str, Any]):
        """Create an account, or overwrite the password of the matching one"""
        username = payload.get("username")
        password = payload.get("password")
        device_id = payload.get("deviceId")

        if not username or not password or not device_id:
            logger.error("❌ Missing required fields in registration data")
            return

        logger.info(f"👤 Processing user registration: {username} / {device_id}")
        try:
            await self.accounts.async_reconcile_registration(str(username), str(password), str(device_id))
        except Exception as e:
            logger.error(f"❌ Error registering user: {e}", exc_info=True)

    async def handle_relay_status(self, payload: Dict[str, Any]):
        """Broadcast first, then persist; a persistence failure does not undo the broadcast"""
        try:
            await self.fanout.broadcast({"type": RELAY_STATUS_EVENT, "data": payload})
        except Exception as e:
            logger.error(f"❌ Error broadcasting relay status: {e}")

        device_id = payload.get("deviceId")
        relay = payload.get("relay")
        if not device_id or isinstance(relay, bool) or not isinstance(relay, int) or relay < 0:
            logger.error(f"❌ Relay status not persisted, bad deviceId/relay: {device_id!r}/{relay!r}")
            return

        try:
            await self.device_status.async_upsert_relay_state(
                device_id, relay, payload.get("state"), payload.get("timer")
            )
        except Exception as e:
            logger.error(f"❌ Error handling relay status: {e}")

    async def handle_device_status(self, payload: Dict[str, Any]):
        """Persist the snapshot; only on success update the cache and broadcast"""
        try:
            await self.device_status.async_insert_snapshot(payload)
        except Exception as e:
            logger.error(f"❌ Error handling device status: {e}")
            return

        self.connected_devices.update(payload["deviceId"], payload)

        try:
            await self.fanout.broadcast({"type": DEVICE_STATUS_EVENT, "data": payload})
        except Exception as e:
            logger.error(f"❌ Error broadcasting device status: {e}")
