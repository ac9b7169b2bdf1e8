"""
MODULE OVERVIEW:
The connection acceptor: the WebSocket route every feed consumer connects to.

WHAT IS HAPPENING HERE:
Upgrades the HTTP request to a WebSocket, records it in the registry, then parks on
`receive()` for as long as the client stays. The feed never reads client messages: the
receive loop exists only to notice the close (or a transport error), and any text or
binary frame a client sends is dropped. Whatever way the loop ends, the `finally` block
deregisters the connection exactly once.
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from loguru import logger

from alert_feed.server.connection_manager import Connection
from alert_feed.server.dependencies import get_ws_feed
from alert_feed.shared.route_utils import extract_client_id, log_connection

router = APIRouter()


@router.websocket("/")
async def websocket_endpoint(
    websocket: WebSocket,
    client_id: str | None = Query(None)
):
    feed = get_ws_feed(websocket)
    connection = Connection(websocket, extract_client_id(client_id))

    # Registered while still CONNECTING; broadcasts skip it until the upgrade completes
    feed.registry.add(connection)
    reason = "closed"
    try:
        await websocket.accept()
        log_connection("connect", connection.client_id, {"reason": "accepted", "active": len(feed.registry)})
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # Client frames (text or binary) are ignored
            logger.debug(f"client_id={connection.client_id} event=ignored")
    except WebSocketDisconnect as e:
        reason = f"code_{e.code}"
    except Exception as e:
        reason = "error"
        logger.error(f"client_id={connection.client_id} event=error reason='{e}'")
    finally:
        if feed.registry.remove(connection):
            log_connection("disconnect", connection.client_id, {"reason": reason, "active": len(feed.registry)})
