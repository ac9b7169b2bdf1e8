"""
MODULE OVERVIEW:
Payload generators that produce realistic fake telemetry.

WHAT IS HAPPENING HERE:
In a real system these payloads would come from camera AI models, IoT sensors, or a
stream processor's throughput counters. Here we simulate them with random sampling over
fixed, finite vocabularies so downstream consumers get constant, plausible traffic.

The generators take an optional `random.Random` so tests can seed them. They never
touch the network; the scheduler decides when they run and hands the result to the
broadcaster.
"""

import random
import string
import time
from collections import deque
from datetime import datetime, timezone

from alert_feed.shared.models import Alert, MetricsBreakdown, MetricsSnapshot, ResolvedAlert

ALERT_TYPES = ["fire", "traffic", "aqi"]

SOURCES = [
    "Camera AI #101",
    "Camera AI #204",
    "IoT Sensor #A45",
    "IoT Sensor #B72",
    "Environmental Monitor #E12",
    "Traffic Monitor #T33",
]

DESCRIPTIONS = {
    "fire": [
        "Smoke detected in industrial area",
        "Fire alarm triggered at building",
        "Heat signature anomaly detected",
        "Smoke plume visible from camera",
    ],
    "traffic": [
        "Vehicle collision reported",
        "Heavy congestion detected",
        "Road obstruction identified",
        "Traffic signal malfunction",
    ],
    "aqi": [
        "PM2.5 levels exceed safe threshold",
        "Hazardous pollutants detected",
        "Air quality degradation alert",
        "Chemical emissions detected",
    ],
}

# The resolution timer does not track real alert ids; it always resolves this one.
RESOLVED_PLACEHOLDER_ID = "demo-resolved-id"

# Half-open ranges [low, high) for each sampled integer
INITIAL_THROUGHPUT_RANGE = (20, 70)
THROUGHPUT_RANGE = (15, 75)
BREAKDOWN_RANGES = {
    "hot": (10, 60),
    "warm": (30, 130),
    "cold": (100, 300),
}

_ID_ALPHABET = string.ascii_lowercase + string.digits
_default_rng = random.Random()


def epoch_ms() -> int:
    return int(time.time() * 1000)


def iso_timestamp() -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 2024-05-01T08:30:00.123Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def random_coordinate(center_lat: float, center_lon: float, radius: float,
                      rng: random.Random | None = None) -> tuple[float, float]:
    """Uniform point inside the box center +/- radius on both axes."""
    rng = rng or _default_rng
    return (
        rng.uniform(center_lat - radius, center_lat + radius),
        rng.uniform(center_lon - radius, center_lon + radius),
    )


def generate_alert(center_lat: float, center_lon: float, radius: float,
                   rng: random.Random | None = None) -> Alert:
    """Emits one fake detection: a random type, place, description and source."""
    rng = rng or _default_rng
    alert_type = rng.choice(ALERT_TYPES)
    lat, lon = random_coordinate(center_lat, center_lon, radius, rng)
    suffix = "".join(rng.choices(_ID_ALPHABET, k=9))

    return Alert(
        id=f"alert-{epoch_ms()}-{suffix}",
        type=alert_type,
        lat=lat,
        lon=lon,
        timestamp=iso_timestamp(),
        description=rng.choice(DESCRIPTIONS[alert_type]),
        source=rng.choice(SOURCES),
    )


def generate_resolution() -> ResolvedAlert:
    return ResolvedAlert(id=RESOLVED_PLACEHOLDER_ID)


class MetricsWindow:
    """
    The sliding throughput window behind the metrics feed.

    Owned by the application state and advanced only by the metrics timer. The window
    length never changes: every tick drops the oldest value and appends a new one.
    """

    def __init__(self, size: int = 10, rng: random.Random | None = None):
        self._rng = rng or _default_rng
        low, high = INITIAL_THROUGHPUT_RANGE
        self._values: deque[int] = deque(
            (self._rng.randrange(low, high) for _ in range(size)), maxlen=size
        )

    @property
    def values(self) -> list[int]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def advance(self) -> MetricsSnapshot:
        # maxlen makes append() drop index 0
        self._values.append(self._rng.randrange(*THROUGHPUT_RANGE))

        return MetricsSnapshot(
            throughput=list(self._values),
            breakdown=MetricsBreakdown(
                **{bucket: self._rng.randrange(low, high) for bucket, (low, high) in BREAKDOWN_RANGES.items()}
            ),
            timestamp=epoch_ms(),
        )
