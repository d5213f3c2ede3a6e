"""
WebSocket connection manager.

Every dashboard listens to the same topic, so connections live in a single
set. Heartbeats are tracked per connection and stale ones are closed by a
periodic sweep.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from fastapi import WebSocket

from pos_shared.config.settings import settings
from pos_shared.config.logging import get_logger

logger = get_logger(__name__)


class ConnectionManager:
    """
    Registry of open dashboard connections.

    Modifications to the registry go through an asyncio.Lock; sends work on
    a snapshot so a slow client never holds the lock.
    """

    def __init__(
        self,
        max_connections: int | None = None,
        heartbeat_timeout: float | None = None,
    ):
        self.max_connections = max_connections or settings.ws_max_total_connections
        self.heartbeat_timeout = heartbeat_timeout or settings.ws_heartbeat_timeout
        self._connections: set[WebSocket] = set()
        self._ws_to_user: dict[WebSocket, int] = {}
        self._last_heartbeat: dict[WebSocket, float] = {}
        self._shutdown = False
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: int, timeout: float = 5.0) -> None:
        """
        Accept a WebSocket connection and register it.

        Raises:
            ConnectionError: During shutdown, on accept timeout, or when the
                global cap is reached (the socket is closed with 1013).
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        try:
            await asyncio.wait_for(websocket.accept(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionError("WebSocket accept timed out")

        async with self._lock:
            if len(self._connections) >= self.max_connections:
                full = True
            else:
                full = False
                self._connections.add(websocket)
                self._ws_to_user[websocket] = user_id
                self._last_heartbeat[websocket] = time.monotonic()

        if full:
            await websocket.close(code=1013, reason="Too many connections")
            raise ConnectionError(f"Connection cap reached ({self.max_connections})")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Forget a connection. Safe to call twice."""
        async with self._lock:
            self._connections.discard(websocket)
            self._ws_to_user.pop(websocket, None)
            self._last_heartbeat.pop(websocket, None)

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """
        Send a message to every connected dashboard.

        Connections whose send fails are dropped.

        Returns:
            Number of connections that received the message.
        """
        async with self._lock:
            targets = list(self._connections)

        sent = 0
        dead: list[WebSocket] = []
        for ws in targets:
            try:
                await ws.send_json(payload)
                sent += 1
            except Exception as e:
                logger.warning(
                    "Failed to send to websocket, dropping it",
                    user_id=self._ws_to_user.get(ws),
                    error=str(e),
                )
                dead.append(ws)

        for ws in dead:
            await self.disconnect(ws)
        return sent

    @property
    def total_connections(self) -> int:
        return len(self._connections)

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": self.total_connections,
            "users_connected": len(set(self._ws_to_user.values())),
            "max_connections": self.max_connections,
        }

    # =========================================================================
    # Heartbeats
    # =========================================================================

    def record_heartbeat(self, websocket: WebSocket) -> None:
        if websocket in self._last_heartbeat:
            self._last_heartbeat[websocket] = time.monotonic()

    def get_stale_connections(self) -> list[WebSocket]:
        """Connections silent for longer than the heartbeat timeout."""
        now = time.monotonic()
        return [
            ws
            for ws, last in list(self._last_heartbeat.items())
            if now - last > self.heartbeat_timeout
        ]

    async def cleanup_stale_connections(self) -> int:
        """
        Close and remove stale connections.

        Returns:
            Number of connections cleaned up.
        """
        stale = self.get_stale_connections()
        for ws in stale:
            try:
                await ws.close(code=1001, reason="Heartbeat timeout")
            except Exception as e:
                logger.warning("Failed to close stale connection", error=str(e))
            await self.disconnect(ws)
        return len(stale)

    async def shutdown(self) -> int:
        """
        Close every connection and refuse new ones.

        Returns:
            Number of connections closed.
        """
        self._shutdown = True
        async with self._lock:
            targets = list(self._connections)

        closed = 0
        for ws in targets:
            try:
                await ws.close(code=1001, reason="Server shutdown")
                closed += 1
            except Exception as e:
                logger.warning("Failed to close connection during shutdown", error=str(e))
            await self.disconnect(ws)

        logger.info("WebSocket shutdown complete", closed=closed)
        return closed

    def is_shutting_down(self) -> bool:
        return self._shutdown
