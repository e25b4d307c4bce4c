"""
GreenRelay - IoT relay-control backend

Bridges field devices (over MQTT) to browser dashboards (over HTTP and
WebSocket), persists accounts and telemetry, and runs the relay scheduler.
"""

import asyncio
import logging
import sys

from greenrelay.core import RelayServer
from greenrelay.utils.logger import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


async def main():
    """Main entry point"""
    server = RelayServer()

    try:
        await server.start()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
    finally:
        await server.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server crashed: {e}", exc_info=True)
        sys.exit(1)
