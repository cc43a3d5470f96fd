"""
WebSocket connection manager for live notifications.

Keeps the open sockets per user and remembers which users are admins so a
broadcast notification can reach the whole admin group.
"""

from typing import Dict, Set
import asyncio
import json

from fastapi import WebSocket


class ConnectionManager:
    """Manages WebSocket connections per user and the admins group."""

    def __init__(self):
        # user_id -> set of active WebSocket connections
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._admins: Set[str] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str, is_admin: bool = False):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.setdefault(user_id, set()).add(websocket)
            if is_admin:
                self._admins.add(user_id)

    async def disconnect(self, websocket: WebSocket, user_id: str):
        """Remove a WebSocket connection."""
        async with self._lock:
            if user_id in self._connections:
                self._connections[user_id].discard(websocket)
                if not self._connections[user_id]:
                    del self._connections[user_id]
                    self._admins.discard(user_id)

    async def send_to_user(self, user_id: str, message: dict):
        """Send a message to all connections for a specific user."""
        async with self._lock:
            connections = self._connections.get(user_id, set()).copy()

        if not connections:
            return

        data = json.dumps(message, default=str)
        closed = []

        for ws in connections:
            try:
                await ws.send_text(data)
            except Exception:
                # Connection closed or errored
                closed.append(ws)

        if closed:
            async with self._lock:
                if user_id in self._connections:
                    for ws in closed:
                        self._connections[user_id].discard(ws)
                    if not self._connections[user_id]:
                        del self._connections[user_id]
                        self._admins.discard(user_id)

    async def send_to_admins(self, message: dict):
        """Send a message to every connected admin."""
        async with self._lock:
            admin_ids = list(self._admins)

        for user_id in admin_ids:
            await self.send_to_user(user_id, message)

    def get_connected_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, set()))


# Singleton instance
manager = ConnectionManager()
