"""MQTT client for the device bus"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import paho.mqtt.client as mqtt

from .. import config

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class MQTTClient:
    """MQTT bus connection.

    paho runs its network loop in a background thread; inbound messages are
    handed to the asyncio event loop so handlers run cooperatively with the
    HTTP server and the scheduler.
    """

    def __init__(self, broker: str = None, port: int = None, client_id: str = None):
        self.broker = broker or config.MQTT_BROKER
        self.port = port or config.MQTT_PORT
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id or config.MQTT_CLIENT_ID,
        )
        self.connected = False
        self.handlers: Dict[str, MessageHandler] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Set callbacks
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        # Set credentials if provided
        if config.MQTT_USERNAME and config.MQTT_PASSWORD:
            self.client.username_pw_set(config.MQTT_USERNAME, config.MQTT_PASSWORD)

        logger.info("MQTT client initialized")

    def register_handler(self, topic: str, handler: MessageHandler):
        """Register the coroutine handling messages on a topic"""
        self.handlers[topic] = handler
        logger.info(f"Registered handler for {topic}")

    async def connect(self):
        """Connect to MQTT broker"""
        self._loop = asyncio.get_running_loop()
        try:
            # connect_async lets paho retry in its own thread if the broker is down
            self.client.connect_async(self.broker, self.port, config.MQTT_KEEPALIVE)
            self.client.loop_start()
            logger.info(f"Connecting to MQTT broker at {self.broker}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            raise

    async def disconnect(self):
        """Disconnect from MQTT broker"""
        self.client.disconnect()
        self.client.loop_stop()
        self.connected = False
        logger.info("Disconnected from MQTT broker")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback when connected"""
        if reason_code.is_failure:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            return

        self.connected = True
        logger.info("✅ Connected to MQTT broker")

        # (Re)subscribe on every connect so subscriptions survive reconnects
        for topic in self.handlers:
            self.client.subscribe(topic)
            logger.info(f"Subscribed to {topic}")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        """Callback when disconnected"""
        self.connected = False
        if reason_code.is_failure:
            logger.warning(f"Unexpected MQTT disconnection ({reason_code})")
        else:
            logger.info("Disconnected from MQTT broker")

    @staticmethod
    def decode_payload(raw: bytes) -> Optional[Dict[str, Any]]:
        """Parse a JSON object payload, or None when malformed"""
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            logger.error(f"❌ Malformed MQTT payload dropped: {e}")
            return None
        if not isinstance(payload, dict):
            logger.error(f"❌ MQTT payload is not an object, dropped: {payload!r}")
            return None
        return payload

    def _on_message(self, client, userdata, msg):
        """Callback when message received (paho network thread)"""
        payload = self.decode_payload(msg.payload)
        if payload is None:
            return

        logger.debug(f"📨 MQTT Message received on {msg.topic}: {payload}")

        if self._loop is None or self._loop.is_closed():
            logger.warning(f"No event loop to dispatch message on {msg.topic}")
            return
        asyncio.run_coroutine_threadsafe(self.dispatch(msg.topic, payload), self._loop)

    async def dispatch(self, topic: str, payload: Dict[str, Any]):
        """Run the handler registered for a topic; errors are logged, never raised"""
        handler = self.handlers.get(topic)
        if handler is None:
            logger.warning(f"No handler for topic: {topic}")
            return
        try:
            await handler(payload)
        except Exception as e:
            logger.error(f"❌ Error processing MQTT message on {topic}: {e}", exc_info=True)

    def publish(self, topic: str, payload):
        """Publish a message without waiting for broker acknowledgement"""
        if isinstance(payload, dict):
            payload = json.dumps(payload)

        if self.connected:
            self.client.publish(topic, payload)
            logger.debug(f"Published to {topic}: {payload}")
        else:
            logger.warning(f"Cannot publish to {topic} - MQTT not connected")
