"""Shared fixtures"""

import asyncio
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

# Configure before greenrelay.config is imported
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_FILE", "")

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from starlette.websockets import WebSocketState

from greenrelay.services import (
    AccountService,
    CommandEmitter,
    ConnectedDevices,
    DeviceStatusService,
    LiveUpdateFanout,
    PasswordHasher,
)
from greenrelay.storage import MemoryDocumentStore


class FakeWebSocket:
    """Stand-in for a browser connection"""

    def __init__(self, state=WebSocketState.CONNECTED, fail=False, stall=False):
        self.client_state = state
        self.fail = fail
        self.stall = stall
        self.sent = []
        self.accepted = False
        self.closed = False

    async def accept(self):
        self.accepted = True

    async def send_text(self, message):
        if self.stall:
            # Peer stopped reading; the send never completes
            await asyncio.Event().wait()
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(message)

    async def close(self):
        self.closed = True
        self.client_state = WebSocketState.DISCONNECTED


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def accounts(store, hasher):
    return AccountService(store, hasher)


@pytest.fixture
def device_status(store):
    return DeviceStatusService(store)


@pytest.fixture
def mqtt_client():
    client = MagicMock()
    client.connected = True
    return client


@pytest.fixture
def emitter(mqtt_client):
    return CommandEmitter(mqtt_client, topic="green-tech/relay-control")


@pytest.fixture
def fanout():
    return LiveUpdateFanout(send_timeout=0.05)


@pytest.fixture
def connected_devices():
    return ConnectedDevices()


@pytest.fixture
def make_websocket():
    return FakeWebSocket


@pytest.fixture
def browser(fanout):
    """An open dashboard session registered with the fanout"""
    websocket = FakeWebSocket()
    fanout._connections.add(websocket)
    return websocket
