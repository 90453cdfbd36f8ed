"""
Real-time fan-out of report events to WebSocket clients.

Every connected client receives every event as
``{"event": <name>, "data": <payload>}``. Delivery is best effort and
at most once: a client that connects later misses earlier events, and a
client whose send fails is dropped.
"""

import logging
from enum import Enum
from typing import Any, Protocol, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ReportEvent(str, Enum):
    """Names of the events sent on the real-time channel."""

    NEW_REPORT = "newReport"
    REPORT_UPDATED = "reportUpdated"
    REPORT_DELETED = "reportDeleted"
    DETECTION_COMPLETE = "detectionComplete"


class EventPublisher(Protocol):
    """Anything the services can publish report events to."""

    async def publish(self, event: str, payload: Any) -> None:
        ...


class EventBroadcaster:
    """WebSocket connection manager for the single broadcast channel."""

    def __init__(self):
        self.active: Set[WebSocket] = set()

    @property
    def connection_count(self) -> int:
        return len(self.active)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.active.add(ws)
        logger.info(f"WebSocket client connected ({len(self.active)} active)")

    def disconnect(self, ws: WebSocket) -> None:
        self.active.discard(ws)
        logger.info(f"WebSocket client disconnected ({len(self.active)} active)")

    async def publish(self, event: str, payload: Any) -> None:
        """
        Send an event to every connected client. Never raises.
        """
        name = event.value if isinstance(event, ReportEvent) else event
        message = {"event": name, "data": payload}

        dead: Set[WebSocket] = set()
        for ws in list(self.active):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping WebSocket client after failed send of {name}: {e}")
                dead.add(ws)
        self.active -= dead

        logger.debug(f"Published {name} to {len(self.active)} client(s)")
