"""WebSocket relay of the seat change feed."""

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from seat_booking.change_feed import ChangeFeed
from seat_booking.redis_client import get_redis
from seat_booking.schemas.feed import WSMessage, WSMessageType

router = APIRouter()
logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 30.0


async def _relay(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Forward change events from the feed queue to one client."""
    while True:
        event = await queue.get()
        await websocket.send_text(
            WSMessage(
                type=WSMessageType.SEAT_CHANGE,
                data=event.model_dump(mode="json"),
            ).model_dump_json()
        )


@router.websocket("/seats")
async def websocket_seat_changes(websocket: WebSocket):
    """
    WebSocket endpoint for seat map change notifications.

    Each message names the seat and what happened to it; clients refetch
    GET /api/v1/seats/availability to redraw. Messages carry no
    availability themselves.

    Messages:
    - seat_change: a hold or booking changed
    - pong: reply to {"type": "ping"}
    - keepalive: sent after 30s without client traffic
    """
    await websocket.accept()
    feed = ChangeFeed(await get_redis())

    try:
        async with feed.subscribe() as queue:
            relay = asyncio.create_task(_relay(websocket, queue))
            try:
                while True:
                    try:
                        data = await asyncio.wait_for(
                            websocket.receive_text(),
                            timeout=KEEPALIVE_SECONDS,
                        )
                        try:
                            client_msg = json.loads(data)
                        except ValueError:
                            client_msg = None
                        if isinstance(client_msg, dict) and client_msg.get("type") == "ping":
                            await websocket.send_text(
                                WSMessage(type=WSMessageType.PONG).model_dump_json()
                            )
                    except asyncio.TimeoutError:
                        await websocket.send_text(
                            WSMessage(type=WSMessageType.KEEPALIVE).model_dump_json()
                        )
            finally:
                relay.cancel()
                try:
                    await relay
                except (asyncio.CancelledError, WebSocketDisconnect):
                    pass

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        await websocket.send_text(
            WSMessage(
                type=WSMessageType.ERROR,
                data={"error": str(e)},
            ).model_dump_json()
        )
