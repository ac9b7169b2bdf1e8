"""
MODULE OVERVIEW:
The Rich terminal dashboard for the feed listener.

WHAT IS HAPPENING HERE:
The listener runs in the background and every callback updates our local view: a table
of recent alerts and resolutions, the latest metrics snapshot, and connection counters.
A `Live` display redraws the layout four times a second.

Payloads are validated against the shared models before they are drawn. Manual
broadcasts can carry anything in `data`, so an alert that does not parse is still listed,
just shown as raw text instead of crashing the dashboard.
"""

from rich.live import Live
from rich.layout import Layout
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from collections import deque
from datetime import datetime
from pydantic import ValidationError
import asyncio
import time

from alert_feed.client.feed_client import FeedClient
from alert_feed.shared.models import Alert, Envelope, MetricsSnapshot

ALERT_COLORS = {"fire": "red", "traffic": "yellow", "aqi": "magenta"}

# Metrics tick every second; three silent seconds means the feed stalled or we are cut off
METRICS_STALE_AFTER_S = 3.0


def short_text(value, limit: int = 60) -> str:
    text = str(value)
    return escape(text[:limit] + "..." if len(text) > limit else text)


class Visualizer:
    def __init__(self, client: FeedClient, refresh_s: float = 0.25):
        self.client = client
        self.refresh_s = refresh_s
        self.recent_alerts = deque(maxlen=10)
        self.latest_metrics: MetricsSnapshot | None = None
        self.last_metrics_at: float | None = None
        self.malformed = 0
        self.status = "INITIALIZING"
        self.timeline = deque(maxlen=5)

    def on_status_change(self, status: str):
        self.status = status
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] State: {status}")

    def on_event(self, envelope: Envelope):
        ts = datetime.now().strftime("%H:%M:%S")
        if envelope.type == "metrics":
            try:
                self.latest_metrics = MetricsSnapshot.model_validate(envelope.data)
                self.last_metrics_at = time.monotonic()
            except ValidationError:
                self.malformed += 1
        elif envelope.type == "alert":
            try:
                alert = Alert.model_validate(envelope.data)
            except ValidationError:
                self.malformed += 1
                self.recent_alerts.appendleft((ts, "[dim]unparsed[/]", short_text(envelope.data), "", ""))
                return
            color = ALERT_COLORS[alert.type]
            self.recent_alerts.appendleft((
                ts,
                f"[{color}]{alert.type}[/]",
                escape(alert.description),
                f"{alert.lat:.4f}, {alert.lon:.4f}",
                escape(alert.source),
            ))
        else:
            self.recent_alerts.appendleft((ts, "[green]resolved[/]", short_text(envelope.data.get("id", "")), "", ""))

    def metrics_stale(self) -> bool:
        if self.last_metrics_at is None:
            return False
        return time.monotonic() - self.last_metrics_at > METRICS_STALE_AFTER_S

    def generate_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="metrics"),
            Layout(name="stats"),
            Layout(name="timeline")
        )

        color = "green" if "ACTIVE" in self.status else "yellow" if "CONNECTING" in self.status else "red"
        layout["header"].update(Panel(f"[{color} bold]Feed: {escape(self.client.url)} | Status: {self.status}[/]", style=color))

        table = Table(title="Alerts", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Type")
        table.add_column("Description", style="white")
        table.add_column("Location", style="blue")
        table.add_column("Source", style="green")
        for row in self.recent_alerts:
            table.add_row(*row)
        layout["left"].update(Panel(table, title="Feed"))

        if self.latest_metrics:
            breakdown = self.latest_metrics.breakdown
            metrics_text = (
                f"Throughput: {self.latest_metrics.throughput}\n"
                f"Hot: {breakdown.hot}  Warm: {breakdown.warm}  Cold: {breakdown.cold}"
            )
        else:
            metrics_text = "Waiting for first tick..."
        if self.metrics_stale():
            layout["metrics"].update(Panel(metrics_text, title="Metrics (stale)", style="red"))
        else:
            layout["metrics"].update(Panel(metrics_text, title="Metrics"))

        stats = self.client.stats
        stats_text = (
            f"Events Received: {stats['events_received']}\n"
            f"Alerts: {stats['alerts']}  Metrics: {stats['metrics']}  Resolved: {stats['resolutions']}\n"
            f"Malformed: {self.malformed}  Reconnects: {stats['reconnect_count']}"
        )
        layout["stats"].update(Panel(stats_text, title="Connection Stats"))

        layout["timeline"].update(Panel("\n".join(self.timeline), title="Timeline"))

        return layout

    async def run(self, duration_s: float) -> dict:
        """Drive the dashboard until the listener's run ends; returns the listener's final stats."""
        async def event_hook(e): self.on_event(e)
        async def status_hook(s): self.on_status_change(s)

        self.client.set_callbacks(event_hook, status_hook)
        client_task = asyncio.create_task(self.client.run(duration_s))

        try:
            with Live(self.generate_layout(), refresh_per_second=4) as live:
                while not client_task.done():
                    live.update(self.generate_layout())
                    await asyncio.sleep(self.refresh_s)
                # One last frame so the closing status and counters stay on screen
                live.update(self.generate_layout())
        finally:
            if not client_task.done():
                client_task.cancel()
        # Surfaces anything the listener raised instead of ending silently
        await client_task
        return self.client.stats
