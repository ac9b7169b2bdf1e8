"""
Shared test fixtures for the mock alert feed tests.
"""

from __future__ import annotations

import asyncio
import random

import pytest
from starlette.websockets import WebSocketState

from alert_feed.server.connection_manager import Broadcaster, Connection, ConnectionRegistry
from alert_feed.shared.config import Settings
from alert_feed.shared.models import Envelope


class FakeWebSocket:
    """Stands in for a Starlette WebSocket: records sent text, can be told to fail or stall."""

    def __init__(self, state: WebSocketState = WebSocketState.CONNECTED, fail: bool = False,
                 stall: bool = False):
        self.client_state = state
        self.application_state = state
        self.fail = fail
        self.stall = stall
        self.sent: list[str] = []

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("socket went away")
        if self.stall:
            # A peer that stopped reading: the write never drains
            await asyncio.sleep(3600)
        self.sent.append(text)

    async def close(self, code: int = 1000) -> None:
        self.application_state = WebSocketState.DISCONNECTED


class RecordingBroadcaster:
    """Collects envelopes instead of sending them."""

    def __init__(self):
        self.envelopes: list[Envelope] = []

    async def broadcast(self, envelope: Envelope) -> int:
        self.envelopes.append(envelope)
        return 0


def make_connection(name: str, **kwargs) -> Connection:
    return Connection(FakeWebSocket(**kwargs), name)


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def broadcaster(registry: ConnectionRegistry) -> Broadcaster:
    return Broadcaster(registry)


@pytest.fixture
def recorder() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def settings() -> Settings:
    """Default feed settings, independent of any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def quiet_settings() -> Settings:
    """Settings with every timer pushed far out, so only manual broadcasts reach clients."""
    return Settings(
        _env_file=None,
        ALERT_MIN_INTERVAL_S=3600.0,
        ALERT_MAX_INTERVAL_S=3600.0,
        METRICS_INTERVAL_S=3600.0,
        RESOLUTION_INTERVAL_S=3600.0,
    )


@pytest.fixture
def connection_factory():
    return make_connection
