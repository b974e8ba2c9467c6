from typing import Any, Dict, Set
from fastapi import WebSocket
import json
import logging

logger = logging.getLogger(__name__)

class ConnectionManager:
    """Live websockets keyed by connection id, plus named broadcast groups."""

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}
        self.groups: Dict[str, Set[str]] = {}

    def connect(self, conn_id: str, websocket: WebSocket):
        self.connections[conn_id] = websocket

    def disconnect(self, conn_id: str):
        self.connections.pop(conn_id, None)
        for group in list(self.groups):
            self.leave_group(group, conn_id)

    def join_group(self, group: str, conn_id: str):
        self.groups.setdefault(group, set()).add(conn_id)

    def leave_group(self, group: str, conn_id: str):
        members = self.groups.get(group)
        if members is None:
            return
        members.discard(conn_id)
        if not members:
            del self.groups[group]

    def close_group(self, group: str):
        self.groups.pop(group, None)

    async def send_to(self, conn_id: str, event: str, data: Any = None) -> bool:
        websocket = self.connections.get(conn_id)
        if websocket is None:
            logger.warning(f"Dropping {event} for unknown connection {conn_id}")
            return False
        try:
            await websocket.send_text(json.dumps({"event": event, "data": data}))
        except Exception as e:
            logger.warning(f"Failed to send {event} to {conn_id}: {e}")
            return False
        return True

    async def broadcast(self, group: str, event: str, data: Any = None, exclude: str = None):
        # Snapshot members; a send may race with a disconnect
        for conn_id in list(self.groups.get(group, set())):
            if conn_id != exclude:
                await self.send_to(conn_id, event, data)
