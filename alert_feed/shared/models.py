"""
MODULE OVERVIEW:
The data structures shared by the feed server and the feed listener, powered by Pydantic v2.

WHAT IS HAPPENING HERE:
Every message that leaves the server is an `Envelope`: a `type` tag plus a `data` object.
The payload models (`Alert`, `MetricsSnapshot`, `ResolvedAlert`) describe what goes inside
`data` for each type. Consumers under test can validate against these same models.
"""
from enum import Enum
from typing import Any, Literal
from datetime import datetime
from pydantic import BaseModel

AlertType = Literal["fire", "traffic", "aqi"]
EnvelopeType = Literal["alert", "metrics", "alert_resolved"]


class ReadyState(str, Enum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


# WHAT IS HAPPENING HERE:
# The universal wrapper around every broadcast. It is serialized exactly once per
# broadcast and the same text goes to every open connection.
class Envelope(BaseModel):
    type: EnvelopeType
    data: dict[str, Any]


class Alert(BaseModel):
    model_config = {"frozen": True}

    id: str
    type: AlertType
    lat: float
    lon: float
    timestamp: str
    description: str
    source: str


class MetricsBreakdown(BaseModel):
    hot: int
    warm: int
    cold: int


class MetricsSnapshot(BaseModel):
    throughput: list[int]
    breakdown: MetricsBreakdown
    timestamp: int


class ResolvedAlert(BaseModel):
    id: str


class ConnectionStats(BaseModel):
    active_connections: int
    open_connections: int
    total_broadcasts: int
    total_deliveries: int
    uptime_s: float
    server_time: datetime


class BroadcastReceipt(BaseModel):
    delivered: int
