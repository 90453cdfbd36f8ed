"""
Real-time channel: a single unauthenticated WebSocket broadcast.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from wastewatch.services.event_broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def report_events(ws: WebSocket):
    """
    WebSocket endpoint for report events.

    The server pushes ``{"event": ..., "data": ...}`` messages for
    newReport, reportUpdated, reportDeleted and detectionComplete.
    A client may send "ping" and receives ``{"event": "pong"}``.
    """
    broadcaster: EventBroadcaster = ws.app.state.broadcaster
    await broadcaster.connect(ws)
    try:
        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(ws)
