import asyncio
import random
from typing import Callable, Awaitable
from loguru import logger
from datetime import datetime, timezone

import websockets

# A session that lasted this long counts as healthy and resets the backoff
STABLE_SESSION_S = 10.0
# How close to the deadline a timeout counts as the run ending
RUN_END_SLACK_S = 0.1


def make_client_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Keys: events_received, alerts, metrics, resolutions, reconnect_count,
          last_disconnect_reason, bytes_received, last_event_at, connected_at.
    """
    return {
        "events_received": 0,
        "alerts": 0,
        "metrics": 0,
        "resolutions": 0,
        "reconnect_count": 0,
        "last_disconnect_reason": None,
        "bytes_received": 0,
        "last_event_at": None,
        "connected_at": datetime.now(timezone.utc).isoformat()
    }


def backoff_delay(attempt: int, base_delay_s: float = 1.0, max_delay_s: float = 32.0) -> float:
    """Exponential backoff capped at max_delay_s, plus up to 10% jitter."""
    delay = min(base_delay_s * (2 ** attempt), max_delay_s)
    return delay + random.uniform(0, delay * 0.1)


async def with_reconnect(
    connect_fn: Callable[[], Awaitable[None]],
    stats: dict,
    duration_s: float,
    base_delay_s: float = 1.0,
    max_delay_s: float = 32.0,
    stable_after_s: float = STABLE_SESSION_S,
    client_id: str = "unknown",
) -> None:
    """
    Keeps a feed session alive for `duration_s`.
    The feed server never retries on its own; reconnecting is the client's job.

    Every time a session ends, whether dialling failed or the server closed it, we wait
    and dial again. The backoff only resets once a session has stayed up for
    `stable_after_s`: a server that accepts and drops us straight away is treated like
    one refusing us, so the listener never spins in a tight reconnect loop.
    """
    attempt = 0
    loop = asyncio.get_running_loop()
    deadline = loop.time() + duration_s

    while loop.time() < deadline:
        started = loop.time()
        try:
            # Cap the session at whatever is left of the run
            await asyncio.wait_for(connect_fn(), timeout=deadline - started)
            reason = "closed by server"
        except asyncio.TimeoutError as e:
            if deadline - loop.time() <= RUN_END_SLACK_S:
                # Reached max duration normally
                break
            # The opening handshake itself timed out
            reason = str(e) or "handshake timed out"
        except (ConnectionError, OSError, websockets.WebSocketException) as e:
            reason = str(e) or e.__class__.__name__

        if loop.time() - started >= stable_after_s:
            attempt = 0
        delay = backoff_delay(attempt, base_delay_s, max_delay_s)
        attempt += 1
        stats["reconnect_count"] += 1
        stats["last_disconnect_reason"] = reason
        logger.warning(
            f"client_id={client_id} event=reconnect attempt={attempt} "
            f"delay={delay:.2f}s reason='{reason}'"
        )

        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        await asyncio.sleep(min(delay, remaining))
