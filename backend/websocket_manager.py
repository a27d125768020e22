"""
Canvas sync over WebSocket.

Every open canvas (and the notation panel) keeps a socket to /ws. When the
editor session commits a new graph, each socket gets a small
`model_updated` event carrying node and link counts; clients then re-read
GET /api/model. Sockets that fail a send are forgotten.
"""
import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Registry of canvas sockets with fan-out of model events."""

    def __init__(self):
        self._sockets: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._sockets.add(websocket)
        logger.info("Canvas attached (%d open)", len(self._sockets))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._sockets.discard(websocket)
        logger.info("Canvas detached (%d open)", len(self._sockets))

    async def broadcast(self, event: dict):
        """Send one event to every canvas; a socket that errors is dropped."""
        if not self._sockets:
            return

        text = json.dumps(event)
        async with self._lock:
            stale = []
            for websocket in self._sockets:
                try:
                    await websocket.send_text(text)
                except Exception as e:
                    logger.debug("Forgetting canvas socket: %s", e)
                    stale.append(websocket)
            self._sockets.difference_update(stale)

    async def notify_model_updated(self, node_count: int, link_count: int):
        await self.broadcast({
            "type": "model_updated",
            "nodes": node_count,
            "links": link_count,
        })

    @property
    def connection_count(self) -> int:
        return len(self._sockets)


ws_manager = WebSocketManager()
