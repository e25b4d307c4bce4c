"""Live-update fanout - pushes events to open browser WebSocket sessions"""

import asyncio
import json
import logging
from typing import Any, Dict, Set

from starlette.websockets import WebSocket, WebSocketState

from .. import config

logger = logging.getLogger(__name__)


class LiveUpdateFanout:
    """Registry of open WebSocket connections.

    Delivery is best effort: connections that are not ready to send are
    skipped, a send that does not finish within send_timeout drops the
    session, and a client that reconnects must pull current state over HTTP.
    """

    def __init__(self, send_timeout: float = None):
        self._connections: Set[WebSocket] = set()
        self.send_timeout = send_timeout or config.WEBSOCKET_SEND_TIMEOUT_SECONDS

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket):
        """Accept and register a new connection"""
        await websocket.accept()
        self._connections.add(websocket)
        logger.info(f"🔌 WebSocket client connected ({len(self._connections)} open)")

    def disconnect(self, websocket: WebSocket):
        """Forget a connection (safe to call more than once)"""
        if websocket in self._connections:
            self._connections.discard(websocket)
            logger.info(f"🔌 WebSocket client disconnected ({len(self._connections)} open)")

    async def _send(self, websocket: WebSocket, message: str) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(message), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"WebSocket send timed out after {self.send_timeout}s, dropping client")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
        self.disconnect(websocket)
        return False

    async def broadcast(self, event: Dict[str, Any]) -> int:
        """Send an event to every ready connection, returning how many received it"""
        message = json.dumps(event, default=str)

        # Snapshot: connections may close mid-broadcast. Sends run concurrently,
        # each bounded by send_timeout.
        ready = [ws for ws in list(self._connections) if ws.client_state == WebSocketState.CONNECTED]
        results = await asyncio.gather(*(self._send(ws, message) for ws in ready))
        delivered = sum(results)

        logger.debug(f"Broadcast {event.get('type')} to {delivered} client(s)")
        return delivered

    async def close_all(self):
        for websocket in list(self._connections):
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")
            self.disconnect(websocket)
