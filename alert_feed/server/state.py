"""
MODULE OVERVIEW:
The explicitly owned feed state.

WHAT IS HAPPENING HERE:
Everything the feed mutates at runtime (the connection registry, the broadcaster's
counters, the sliding throughput window, the timers) is built here in one place when
the app starts, and torn down when it stops. Routes reach it through `app.state.feed`
instead of module-level singletons.
"""

import random
from datetime import datetime, timezone

from alert_feed.server.connection_manager import Broadcaster, ConnectionRegistry
from alert_feed.server.dummy_data import MetricsWindow
from alert_feed.server.scheduler import Scheduler
from alert_feed.shared.config import Settings
from alert_feed.shared.models import ConnectionStats


class FeedState:
    def __init__(self, settings: Settings, rng: random.Random | None = None):
        self.settings = settings
        rng = rng or random.Random()
        self.registry = ConnectionRegistry()
        self.broadcaster = Broadcaster(self.registry, settings.SEND_TIMEOUT_S)
        self.metrics = MetricsWindow(settings.THROUGHPUT_WINDOW, rng)
        self.scheduler = Scheduler(self.broadcaster, self.metrics, settings, rng)
        self.startup_time = datetime.now(timezone.utc)

    def start(self) -> None:
        self.startup_time = datetime.now(timezone.utc)
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.registry.close_all()

    def get_stats(self) -> ConnectionStats:
        now = datetime.now(timezone.utc)
        return ConnectionStats(
            active_connections=len(self.registry),
            open_connections=self.registry.open_count(),
            total_broadcasts=self.broadcaster.total_broadcasts,
            total_deliveries=self.broadcaster.total_deliveries,
            uptime_s=(now - self.startup_time).total_seconds(),
            server_time=now,
        )
