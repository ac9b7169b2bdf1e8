"""
Unit tests for the feed timers.

Tests cover:
    - Individual ticks: alert, metrics, resolution
    - Resolution probability, draw by draw and in aggregate
    - Alert interval bounds
    - start()/stop() lifecycle of the background loops
"""

from __future__ import annotations

import asyncio
import random

from alert_feed.server.connection_manager import Broadcaster
from alert_feed.server.dummy_data import MetricsWindow
from alert_feed.server.scheduler import Scheduler
from alert_feed.shared.config import Settings
from alert_feed.shared.models import Alert, MetricsSnapshot


def make_scheduler(recorder, settings, seed: int = 7) -> Scheduler:
    rng = random.Random(seed)
    return Scheduler(recorder, MetricsWindow(settings.THROUGHPUT_WINDOW, rng), settings, rng)


# ── Ticks ─────────────────────────────────────────────────────────────────────


async def test_alert_tick_broadcasts_alert(recorder, settings):
    scheduler = make_scheduler(recorder, settings)

    envelope = await scheduler.tick_alert()

    assert recorder.envelopes == [envelope]
    assert envelope.type == "alert"
    alert = Alert.model_validate(envelope.data)
    assert abs(alert.lat - settings.CITY_CENTER_LAT) <= settings.CITY_RADIUS
    assert abs(alert.lon - settings.CITY_CENTER_LON) <= settings.CITY_RADIUS


async def test_metrics_tick_advances_shared_window(recorder, settings):
    scheduler = make_scheduler(recorder, settings)
    before = scheduler.metrics.values

    envelope = await scheduler.tick_metrics()

    snapshot = MetricsSnapshot.model_validate(envelope.data)
    assert envelope.type == "metrics"
    assert snapshot.throughput[:-1] == before[1:]
    assert scheduler.metrics.values == snapshot.throughput


async def test_resolution_fires_exactly_when_draw_exceeds_threshold(recorder, settings):
    # The window gets its own rng so the scheduler's draws line up with the mirror
    scheduler = Scheduler(recorder, MetricsWindow(10, random.Random(0)), settings, random.Random(99))
    mirror = random.Random(99)

    for _ in range(1000):
        expected = mirror.random() > 0.7
        envelope = await scheduler.tick_resolution()
        if expected:
            assert envelope is not None
            assert envelope.type == "alert_resolved"
            assert envelope.data == {"id": "demo-resolved-id"}
        else:
            assert envelope is None


async def test_resolution_rate_matches_probability(recorder, settings):
    scheduler = make_scheduler(recorder, settings, seed=2024)
    ticks = 10_000

    for _ in range(ticks):
        await scheduler.tick_resolution()

    rate = len(recorder.envelopes) / ticks
    assert abs(rate - 0.3) < 0.02


async def test_resolution_probability_extremes(recorder):
    never = make_scheduler(recorder, Settings(_env_file=None, RESOLUTION_PROBABILITY=0.0))
    always = make_scheduler(recorder, Settings(_env_file=None, RESOLUTION_PROBABILITY=1.0))

    for _ in range(200):
        assert await never.tick_resolution() is None
    for _ in range(200):
        assert await always.tick_resolution() is not None


def test_alert_delay_is_redrawn_within_bounds(recorder, settings):
    scheduler = make_scheduler(recorder, settings)

    delays = [scheduler.next_alert_delay() for _ in range(1000)]

    assert all(0.0 <= d <= 300.0 for d in delays)
    assert len(set(delays)) > 990


# ── Lifecycle ─────────────────────────────────────────────────────────────────


async def test_start_runs_all_three_timers(recorder):
    fast = Settings(
        _env_file=None,
        ALERT_MIN_INTERVAL_S=0.0,
        ALERT_MAX_INTERVAL_S=0.02,
        METRICS_INTERVAL_S=0.01,
        RESOLUTION_INTERVAL_S=0.01,
        RESOLUTION_PROBABILITY=1.0,
    )
    scheduler = make_scheduler(recorder, fast)

    scheduler.start()
    assert scheduler.running
    await asyncio.sleep(0.3)
    await scheduler.stop()

    assert not scheduler.running
    assert {e.type for e in recorder.envelopes} == {"alert", "metrics", "alert_resolved"}


async def test_failing_tick_does_not_kill_timer(settings):
    calls = 0

    class FlakyBroadcaster:
        async def broadcast(self, envelope):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return 0

    fast = Settings(
        _env_file=None,
        ALERT_MIN_INTERVAL_S=3600.0,
        ALERT_MAX_INTERVAL_S=3600.0,
        METRICS_INTERVAL_S=0.01,
        RESOLUTION_INTERVAL_S=3600.0,
    )
    scheduler = make_scheduler(FlakyBroadcaster(), fast)

    scheduler.start()
    await asyncio.sleep(0.2)
    await scheduler.stop()

    assert calls > 1


async def test_stalled_client_does_not_stop_metrics(registry, connection_factory):
    fast = Settings(
        _env_file=None,
        ALERT_MIN_INTERVAL_S=3600.0,
        ALERT_MAX_INTERVAL_S=3600.0,
        METRICS_INTERVAL_S=0.02,
        RESOLUTION_INTERVAL_S=3600.0,
        SEND_TIMEOUT_S=0.05,
    )
    stalled = connection_factory("stalled", stall=True)
    healthy = connection_factory("healthy")
    registry.add(stalled)
    registry.add(healthy)
    scheduler = make_scheduler(Broadcaster(registry, fast.SEND_TIMEOUT_S), fast)

    scheduler.start()
    await asyncio.sleep(0.5)
    await scheduler.stop()

    assert stalled not in registry
    # Roughly 0.5s of 20ms ticks, minus the one tick spent waiting on the stalled client
    assert len(healthy.websocket.sent) >= 5
