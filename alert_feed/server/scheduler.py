"""
MODULE OVERVIEW:
The three feed timers.

WHAT IS HAPPENING HERE:
Each timer is an infinite background loop of: sleep -> generate a payload -> broadcast.
They run as independent `asyncio` tasks, so a slow alert interval never delays a metrics
tick. Each tick is also exposed as a plain coroutine (`tick_alert`, `tick_metrics`,
`tick_resolution`) so it can be driven by hand.

  - Alert timer:      random wait, redrawn after every firing.
  - Metrics timer:    fixed wait, advances the sliding throughput window.
  - Resolution timer: fixed wait, fires an `alert_resolved` with some probability.
"""

import asyncio
import random
from typing import Awaitable, Callable

from loguru import logger

from alert_feed.server.connection_manager import Broadcaster
from alert_feed.server.dummy_data import MetricsWindow, generate_alert, generate_resolution
from alert_feed.shared.config import Settings
from alert_feed.shared.models import Envelope


class Scheduler:
    def __init__(self, broadcaster: Broadcaster, metrics: MetricsWindow, settings: Settings,
                 rng: random.Random | None = None):
        self.broadcaster = broadcaster
        self.metrics = metrics
        self.settings = settings
        self.rng = rng or random.Random()
        self._tasks: set[asyncio.Task] = set()

    # ==========================
    # TICKS
    # ==========================
    def next_alert_delay(self) -> float:
        return self.rng.uniform(self.settings.ALERT_MIN_INTERVAL_S, self.settings.ALERT_MAX_INTERVAL_S)

    async def tick_alert(self) -> Envelope:
        alert = generate_alert(
            self.settings.CITY_CENTER_LAT,
            self.settings.CITY_CENTER_LON,
            self.settings.CITY_RADIUS,
            self.rng,
        )
        logger.info(f"event=alert type={alert.type} lat={alert.lat:.4f} lon={alert.lon:.4f} source='{alert.source}'")
        envelope = Envelope(type="alert", data=alert.model_dump())
        await self.broadcaster.broadcast(envelope)
        return envelope

    async def tick_metrics(self) -> Envelope:
        snapshot = self.metrics.advance()
        envelope = Envelope(type="metrics", data=snapshot.model_dump())
        await self.broadcaster.broadcast(envelope)
        return envelope

    async def tick_resolution(self) -> Envelope | None:
        # Fires when the draw lands above 1 - p (0.7 with the default p=0.3)
        threshold = 1.0 - self.settings.RESOLUTION_PROBABILITY
        if self.rng.random() <= threshold:
            return None
        envelope = Envelope(type="alert_resolved", data=generate_resolution().model_dump())
        logger.info(f"event=alert_resolved id={envelope.data['id']}")
        await self.broadcaster.broadcast(envelope)
        return envelope

    # ==========================
    # LOOPS
    # ==========================
    async def _run_timer(self, name: str, next_delay: Callable[[], float],
                         tick: Callable[[], Awaitable[Envelope | None]]) -> None:
        try:
            while True:
                await asyncio.sleep(next_delay())
                try:
                    await tick()
                except Exception as e:
                    logger.error(f"timer={name} event=error reason='{e}'")
        except asyncio.CancelledError:
            logger.debug(f"timer={name} event=cancelled")
            raise

    def start(self) -> None:
        timers = [
            ("alert", self.next_alert_delay, self.tick_alert),
            ("metrics", lambda: self.settings.METRICS_INTERVAL_S, self.tick_metrics),
            ("resolution", lambda: self.settings.RESOLUTION_INTERVAL_S, self.tick_resolution),
        ]
        for name, next_delay, tick in timers:
            task = asyncio.create_task(self._run_timer(name, next_delay, tick), name=f"timer-{name}")
            self._tasks.add(task)
        logger.info(f"Started {len(self._tasks)} feed timers.")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        # Wait for them to exit cleanly
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)
