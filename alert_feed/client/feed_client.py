"""
MODULE OVERVIEW:
The feed listener: a WebSocket consumer of the mock alert feed.

WHAT IS HAPPENING HERE:
We use the `websockets` library to hold one connection open and read envelopes off it.
Each message is validated into the shared `Envelope` model, counted, and handed to an
optional callback (the visualizer). If the server drops us, `with_reconnect` backs off
and dials again until the run duration is over.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Awaitable, Callable

import websockets
from loguru import logger
from pydantic import ValidationError

from alert_feed.shared.client_utils import make_client_stats, with_reconnect
from alert_feed.shared.models import Envelope

STAT_KEYS = {"alert": "alerts", "metrics": "metrics", "alert_resolved": "resolutions"}


class FeedClient:
    def __init__(self, url: str, client_id: str = "cli_listener"):
        self.client_id = client_id
        sep = "&" if "?" in url else "?"
        self.url = f"{url}{sep}client_id={client_id}"

        self.on_event_callback: Callable[[Envelope], Awaitable[None]] | None = None
        self.on_status_change_callback: Callable[[str], Awaitable[None]] | None = None

        self.stats = make_client_stats()

    @property
    def events_received(self): return self.stats["events_received"]

    @property
    def reconnect_count(self): return self.stats["reconnect_count"]

    def set_callbacks(self, on_event, on_status_change):
        self.on_event_callback = on_event
        self.on_status_change_callback = on_status_change

    async def _emit_status(self, status: str):
        if self.on_status_change_callback:
            await self.on_status_change_callback(status)

    async def handle_message(self, message: str | bytes) -> Envelope | None:
        self.stats["bytes_received"] += len(message)
        try:
            envelope = Envelope.model_validate(json.loads(message))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"client_id={self.client_id} event=invalid_message reason='{e}'")
            return None

        self.stats["events_received"] += 1
        self.stats[STAT_KEYS[envelope.type]] += 1
        self.stats["last_event_at"] = datetime.now(timezone.utc).isoformat()
        if self.on_event_callback:
            # A consumer bug must not tear down the connection
            try:
                await self.on_event_callback(envelope)
            except Exception as e:
                logger.error(f"client_id={self.client_id} event=callback_error type={envelope.type} reason='{e}'")
        return envelope

    async def connect(self) -> None:
        await self._emit_status("CONNECTING")
        async with websockets.connect(self.url) as ws:
            await self._emit_status("ACTIVE")
            async for message in ws:
                await self.handle_message(message)
        await self._emit_status("DISCONNECTED")

    async def run(self, duration_s: float = 60.0) -> None:
        try:
            await with_reconnect(self.connect, self.stats, duration_s, client_id=self.client_id)
        except asyncio.CancelledError:
            pass
        finally:
            await self._emit_status("CLOSED")
