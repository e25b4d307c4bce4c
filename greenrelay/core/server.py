"""Core RelayServer - wires the bus, store, scheduler and HTTP surface"""

import asyncio
import logging

import uvicorn

from .. import config
from ..api import create_app
from ..mqtt import IngestionHandlers, MQTTClient
from ..services import (
    AccountService,
    CommandEmitter,
    ConnectedDevices,
    DeviceStatusService,
    LiveUpdateFanout,
    PasswordHasher,
    RelayScheduler,
)
from ..storage import DocumentStore, create_store

logger = logging.getLogger(__name__)


class RelayServer:
    """Main backend server orchestrating all components"""

    def __init__(self, store: DocumentStore = None, mqtt_client: MQTTClient = None):
        logger.info("Initializing GreenRelay server...")

        # Persistence
        self.store = store or create_store(config.STORE_BACKEND)

        # Bus and live sessions
        self.mqtt_client = mqtt_client or MQTTClient()
        self.fanout = LiveUpdateFanout()
        self.connected_devices = ConnectedDevices()

        # Services
        self.accounts = AccountService(self.store, PasswordHasher())
        self.device_status = DeviceStatusService(self.store)
        self.command_emitter = CommandEmitter(self.mqtt_client)
        self.scheduler = RelayScheduler(self.accounts, self.command_emitter)

        # Bus handlers
        self.handlers = IngestionHandlers(
            accounts=self.accounts,
            device_status=self.device_status,
            fanout=self.fanout,
            connected_devices=self.connected_devices,
        )
        self.handlers.register(self.mqtt_client)

        self.app = create_app(self)
        self._scheduler_task = None
        self._http_server = None
        self.running = False

        logger.info("GreenRelay server initialized successfully")

    async def start(self):
        """Start the server and all services; returns when the HTTP server exits"""
        try:
            logger.info("Starting GreenRelay server...")

            await self.mqtt_client.connect()

            self.running = True
            self._scheduler_task = asyncio.create_task(self.scheduler.run())

            self._http_server = uvicorn.Server(uvicorn.Config(
                self.app,
                host=config.HTTP_HOST,
                port=config.HTTP_PORT,
                log_config=None,  # keep our logging setup
            ))
            logger.info(f"🚀 GreenRelay running on http://{config.HTTP_HOST}:{config.HTTP_PORT}")
            await self._http_server.serve()

        except Exception as e:
            logger.error(f"Error starting GreenRelay server: {e}", exc_info=True)
            raise

    async def stop(self):
        """Stop server and cleanup"""
        if not self.running:
            return
        logger.info("Stopping GreenRelay server...")
        self.running = False

        try:
            self.scheduler.stop()
            if self._scheduler_task is not None:
                self._scheduler_task.cancel()
                try:
                    await self._scheduler_task
                except asyncio.CancelledError:
                    pass

            if self._http_server is not None:
                self._http_server.should_exit = True

            await self.fanout.close_all()
            await self.mqtt_client.disconnect()
            self.store.close()

            logger.info("GreenRelay server stopped successfully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")
