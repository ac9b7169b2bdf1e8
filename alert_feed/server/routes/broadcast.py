"""
MODULE OVERVIEW:
Manual broadcast endpoint.

WHAT IS HAPPENING HERE:
Consumers under development often need a specific event *now* rather than waiting up to
five minutes for the alert timer. POSTing an envelope here pushes it through the very same
broadcaster the timers use, so clients cannot tell the difference.
"""
from fastapi import APIRouter, Depends, status

from alert_feed.server.dependencies import get_feed
from alert_feed.server.state import FeedState
from alert_feed.shared.models import BroadcastReceipt, Envelope


router = APIRouter()


@router.post("/broadcast", status_code=status.HTTP_202_ACCEPTED, response_model=BroadcastReceipt)
async def broadcast_endpoint(envelope: Envelope, feed: FeedState = Depends(get_feed)):
    delivered = await feed.broadcaster.broadcast(envelope)
    return BroadcastReceipt(delivered=delivered)
