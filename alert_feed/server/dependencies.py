"""
FastAPI dependencies that hand routes the feed state created in the app lifespan.
"""
from fastapi import Request
from fastapi.websockets import WebSocket

from alert_feed.server.state import FeedState


def get_feed(request: Request) -> FeedState:
    return request.app.state.feed


def get_ws_feed(websocket: WebSocket) -> FeedState:
    return websocket.app.state.feed
