"""WebSocket fan-out for quiz events.

Services publish from any thread; events are handed to the event loop through
an ``asyncio.Queue`` and a single pump task sends each one to every connected
client. Delivery is best effort: no acknowledgement, no retry, no replay for
clients that connect later. A connection whose send fails is dropped.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
import logging

from fastapi import WebSocket
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class BroadcastHub:
    """Tracks connected clients and pushes published events to all of them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[dict[str, object]] | None = None
        self._pump: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._pump = asyncio.create_task(self._run(), name="BroadcastHubPump")

    async def stop(self) -> None:
        pump = self._pump
        self._pump = None
        self._loop = None
        self._queue = None
        if pump is not None:
            pump.cancel()
            with suppress(asyncio.CancelledError):
                await pump

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        logger.info("Socket connected (%d open)", len(self._connections))

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._connections:
            self._connections.discard(websocket)
            logger.info("Socket disconnected (%d open)", len(self._connections))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def publish(self, event: BaseModel) -> None:
        """Queue an event for every client. Safe to call from any thread."""
        loop, queue = self._loop, self._queue
        if loop is None or queue is None:
            logger.debug("Broadcast hub not running; dropped %s", type(event).__name__)
            return
        payload = event.model_dump(mode="json")
        try:
            loop.call_soon_threadsafe(queue.put_nowait, payload)
        except RuntimeError:
            logger.debug("Event loop closed; dropped %s", type(event).__name__)

    async def send_to_all(self, payload: dict[str, object]) -> int:
        """Send to every client concurrently and drop the ones that failed."""
        connections = list(self._connections)
        results = await asyncio.gather(
            *(websocket.send_json(payload) for websocket in connections),
            return_exceptions=True,
        )
        dead_connections = [
            websocket
            for websocket, result in zip(connections, results)
            if isinstance(result, BaseException)
        ]
        delivered = len(connections) - len(dead_connections)
        for websocket in dead_connections:
            self._connections.discard(websocket)
        if dead_connections:
            logger.debug("Cleaned %d dead connection(s)", len(dead_connections))
        return delivered

    async def _run(self) -> None:
        queue = self._queue
        while True:
            payload = await queue.get()
            try:
                await self.send_to_all(payload)
            except Exception:
                logger.exception("Broadcast of %s failed", payload.get("type"))
