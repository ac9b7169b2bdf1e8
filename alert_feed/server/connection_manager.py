"""
MODULE OVERVIEW:
The connection registry and the fan-out broadcaster.
This file is the heartbeat of the feed: every WebSocket the acceptor takes in is
recorded here, and every event the timers produce leaves through here.

WHAT IS HAPPENING HERE:
`ConnectionRegistry` holds the set of live connections behind a single coarse lock.
Acceptor tasks add and remove entries while timer tasks iterate; iteration works on a
snapshot, so a connection that joins or leaves mid-broadcast may or may not be visited.

`Broadcaster.broadcast()` serializes an envelope ONCE and sends the identical text to
every OPEN connection. One client failing never stops the others from receiving.
Real-world application: the fan-out edge of a telemetry or notifications gateway.
"""

import asyncio
import threading
from typing import Awaitable, Callable
from datetime import datetime, timezone
from fastapi.websockets import WebSocket
from starlette.websockets import WebSocketState
from loguru import logger

from alert_feed.shared.models import Envelope, ReadyState


class Connection:
    """Handle over one accepted WebSocket, with a readiness state derived from the transport."""

    def __init__(self, websocket: WebSocket, client_id: str):
        self.websocket = websocket
        self.client_id = client_id
        self.connected_at = datetime.now(timezone.utc)
        self._closing = False

    @property
    def ready_state(self) -> ReadyState:
        states = (self.websocket.client_state, self.websocket.application_state)
        if all(s == WebSocketState.CONNECTED for s in states):
            return ReadyState.CLOSING if self._closing else ReadyState.OPEN
        if WebSocketState.DISCONNECTED not in states and WebSocketState.CONNECTING in states:
            return ReadyState.CONNECTING
        # Either side gone, or the upgrade was answered with a plain HTTP response
        return ReadyState.CLOSED

    async def send_text(self, text: str) -> None:
        await self.websocket.send_text(text)

    async def close(self, code: int = 1000) -> None:
        self._closing = True
        await self.websocket.close(code=code)

    def __repr__(self) -> str:
        return f"Connection(client_id={self.client_id!r}, state={self.ready_state.value})"


class ConnectionRegistry:
    def __init__(self):
        self._connections: set[Connection] = set()
        # One coarse lock: the feed does a handful of operations per second at most.
        self._lock = threading.Lock()

    def add(self, connection: Connection) -> None:
        with self._lock:
            self._connections.add(connection)

    def remove(self, connection: Connection) -> bool:
        """Deregister a connection. Safe to call twice; returns False if it was already gone."""
        with self._lock:
            if connection not in self._connections:
                return False
            self._connections.discard(connection)
            return True

    def snapshot(self) -> list[Connection]:
        with self._lock:
            return list(self._connections)

    def open_count(self) -> int:
        return sum(1 for c in self.snapshot() if c.ready_state is ReadyState.OPEN)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection: Connection) -> bool:
        with self._lock:
            return connection in self._connections

    async def for_each_open(self, fn: Callable[[Connection], Awaitable[None]]) -> int:
        """
        Await `fn` once per OPEN connection, skipping the rest. Returns how many were visited.

        The calls run concurrently, so one connection that never finishes cannot hold back
        the others. An exception from `fn` is logged and does not reach the caller.
        """
        targets = [c for c in self.snapshot() if c.ready_state is ReadyState.OPEN]
        results = await asyncio.gather(*(fn(c) for c in targets), return_exceptions=True)
        for connection, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"client_id={connection.client_id} event=error reason='{result}'")
        return len(targets)

    async def close_all(self) -> None:
        for connection in self.snapshot():
            if connection.ready_state is not ReadyState.OPEN:
                continue
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"client_id={connection.client_id} event=error reason='close failed: {e}'")


class Broadcaster:
    def __init__(self, registry: ConnectionRegistry, send_timeout_s: float = 1.0):
        self.registry = registry
        self.send_timeout_s = send_timeout_s
        self.total_broadcasts = 0
        self.total_deliveries = 0

    async def broadcast(self, envelope: Envelope) -> int:
        """
        WHAT IS HAPPENING HERE:
        This is the fan-out. The envelope becomes JSON text once, then every open
        connection gets that same text, all sends in flight at the same time.
        A send that blows up (usually a client that vanished mid-iteration) or that
        does not finish within `send_timeout_s` (a peer that stopped reading) is logged
        and the connection deregistered. Nothing is raised to the caller. A stalled client
        costs the feed at most one `send_timeout_s`, after which it is gone.
        """
        serialized = envelope.model_dump_json()
        delivered = 0

        async def send(connection: Connection) -> None:
            nonlocal delivered
            try:
                await asyncio.wait_for(connection.send_text(serialized), timeout=self.send_timeout_s)
                delivered += 1
            except asyncio.TimeoutError:
                logger.warning(
                    f"client_id={connection.client_id} event=error reason='send timed out after {self.send_timeout_s:g}s'"
                )
                self.registry.remove(connection)
            except Exception as e:
                logger.warning(f"client_id={connection.client_id} event=error reason='send failed: {e}'")
                self.registry.remove(connection)

        await self.registry.for_each_open(send)

        self.total_broadcasts += 1
        self.total_deliveries += delivered
        logger.debug(f"event=broadcast type={envelope.type} delivered={delivered}")
        return delivered
