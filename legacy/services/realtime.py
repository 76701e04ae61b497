"""
Real-time vault events over WebSocket.

Each vault is a room. Events published to a room get a per-vault sequence
number and a unique id, are delivered at most once to every connection in
the room, and are kept in a bounded history so a reconnecting client can
ask for everything after the last sequence number it saw.
"""
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, List, Optional, Set

from fastapi import WebSocket

from legacy.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ConnectionManager:
    """Manages WebSocket connections per vault."""
    history_size: int = 100
    # vault_id -> set of websocket connections
    vault_connections: Dict[str, Set[WebSocket]] = field(default_factory=dict)
    # websocket -> user info
    connection_info: Dict[WebSocket, dict] = field(default_factory=dict)
    # vault_id -> last assigned sequence number
    sequences: Dict[str, int] = field(default_factory=dict)
    # vault_id -> recent events, oldest first
    history: Dict[str, Deque[dict]] = field(default_factory=dict)

    async def connect(
        self,
        websocket: WebSocket,
        vault_id: str,
        user_id: str,
        user_name: str,
        last_seq: Optional[int] = None
    ):
        """Register an accepted connection and announce it to the vault."""
        self.vault_connections.setdefault(vault_id, set()).add(websocket)
        self.connection_info[websocket] = {
            "vault_id": vault_id,
            "user_id": user_id,
            "user_name": user_name,
            "connected_at": datetime.utcnow().isoformat()
        }

        await self.publish(vault_id, "user_joined", {
            "user": {"id": user_id, "name": user_name}
        }, user_id=user_id, user_name=user_name, exclude=websocket)

        await websocket.send_json({
            "type": "users_online",
            "vault_id": vault_id,
            "users": self.get_vault_users(vault_id),
            "seq": self.sequences.get(vault_id, 0)
        })

        if last_seq is not None:
            for event in self.events_since(vault_id, last_seq):
                await websocket.send_json(event)

    def disconnect(self, websocket: WebSocket) -> Optional[dict]:
        """Remove a WebSocket connection."""
        info = self.connection_info.pop(websocket, None)
        if info:
            vault_id = info["vault_id"]
            connections = self.vault_connections.get(vault_id)
            if connections is not None:
                connections.discard(websocket)
                if not connections:
                    del self.vault_connections[vault_id]
        return info

    def get_vault_users(self, vault_id: str) -> List[dict]:
        """Users currently connected to a vault, one entry per user."""
        users = {}
        for ws in self.vault_connections.get(vault_id, ()):
            info = self.connection_info.get(ws)
            if info and info["user_id"] not in users:
                users[info["user_id"]] = {
                    "user_id": info["user_id"],
                    "user_name": info["user_name"],
                    "connected_at": info["connected_at"]
                }
        return list(users.values())

    def events_since(self, vault_id: str, last_seq: int) -> List[dict]:
        return [e for e in self.history.get(vault_id, ()) if e["seq"] > last_seq]

    def _next_event(self, vault_id: str, event_type: str, data: dict, user_id: str, user_name: str) -> dict:
        seq = self.sequences.get(vault_id, 0) + 1
        self.sequences[vault_id] = seq
        event = {
            "type": event_type,
            "event_id": uuid.uuid4().hex,
            "vault_id": vault_id,
            "seq": seq,
            "user_id": user_id,
            "user_name": user_name,
            "data": data,
            "timestamp": datetime.utcnow().isoformat()
        }
        room_history = self.history.setdefault(vault_id, deque(maxlen=self.history_size))
        room_history.append(event)
        return event

    async def publish(
        self,
        vault_id: str,
        event_type: str,
        data: dict,
        user_id: str = None,
        user_name: str = None,
        exclude: Optional[WebSocket] = None,
        exclude_user_id: Optional[str] = None
    ) -> dict:
        """Sequence an event and broadcast it to the vault."""
        event = self._next_event(vault_id, event_type, data, user_id, user_name)

        dead_connections = set()
        for connection in list(self.vault_connections.get(vault_id, ())):
            if connection == exclude:
                continue
            info = self.connection_info.get(connection)
            if exclude_user_id and info and info["user_id"] == exclude_user_id:
                continue
            try:
                await connection.send_json(event)
            except Exception as e:
                logger.warning(f"Dropping connection on vault {vault_id}: {e}")
                dead_connections.add(connection)

        for dead in dead_connections:
            self.disconnect(dead)

        return event

    async def relay(self, websocket: WebSocket, event_type: str, data: dict):
        """Forward an ephemeral client signal (typing, focus) to the rest of the vault.

        Relayed signals are not sequenced or kept in history.
        """
        info = self.connection_info.get(websocket)
        if not info:
            return
        message = {
            "type": event_type,
            "vault_id": info["vault_id"],
            "user_id": info["user_id"],
            "user_name": info["user_name"],
            "data": data
        }
        for connection in list(self.vault_connections.get(info["vault_id"], ())):
            if connection == websocket:
                continue
            try:
                await connection.send_json(message)
            except Exception:
                self.disconnect(connection)

    def forget_vault(self, vault_id: str):
        """Drop sequencing state of a deleted vault."""
        self.sequences.pop(vault_id, None)
        self.history.pop(vault_id, None)


# Global connection manager
manager = ConnectionManager(history_size=settings.realtime_history_size)


async def broadcast_vault_event(
    vault_id: str,
    event_type: str,
    data: dict,
    user_id: str = None,
    user_name: str = None
) -> dict:
    """Helper to publish events from API routes.

    The acting user's own connections are skipped; their client already
    applied the change from the HTTP response.
    """
    return await manager.publish(
        vault_id, event_type, data,
        user_id=user_id, user_name=user_name, exclude_user_id=user_id
    )
