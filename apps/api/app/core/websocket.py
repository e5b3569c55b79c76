"""
WebSocket connection registry with room-based fan-out.

Rooms are the only addressing scheme: every connection auto-joins
``user:{id}`` and ``role:{role}`` and may explicitly join entity rooms.
State is in-process; a disconnect drops the socket from every room and
clients recover missed events by refetching.
"""

from typing import Dict, Iterable, Set
from uuid import UUID
import asyncio
import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)

ROOM_KINDS = frozenset(
    {"user", "role", "student", "application", "service_request", "chat"}
)
# Rooms a client may join/leave explicitly
JOINABLE_ROOM_KINDS = frozenset({"student", "application", "service_request", "chat"})


def room_name(kind: str, key: UUID | str) -> str:
    if kind not in ROOM_KINDS:
        raise ValueError(f"Unknown room kind '{kind}'")
    return f"{kind}:{key}"


def user_room(user_id: UUID | str) -> str:
    return room_name("user", user_id)


def role_room(role: str) -> str:
    return room_name("role", role)


class ConnectionManager:
    """Tracks sockets per room and which rooms each socket joined."""

    def __init__(self):
        # room -> sockets in it
        self._rooms: Dict[str, Set[WebSocket]] = {}
        # socket -> rooms it joined (for cleanup on disconnect)
        self._memberships: Dict[WebSocket, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: UUID, role: str):
        """Accept and register a connection in its user and role rooms."""
        await websocket.accept()
        await self.join(websocket, user_room(user_id))
        await self.join(websocket, role_room(role))

    async def disconnect(self, websocket: WebSocket):
        """Remove a connection from every room it joined."""
        async with self._lock:
            for room in self._memberships.pop(websocket, set()):
                members = self._rooms.get(room)
                if members is None:
                    continue
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    async def join(self, websocket: WebSocket, room: str):
        async with self._lock:
            self._rooms.setdefault(room, set()).add(websocket)
            self._memberships.setdefault(websocket, set()).add(room)

    async def leave(self, websocket: WebSocket, room: str):
        async with self._lock:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self._rooms[room]
            joined = self._memberships.get(websocket)
            if joined is not None:
                joined.discard(room)

    def has_listeners(self, rooms: Iterable[str]) -> bool:
        return any(self._rooms.get(room) for room in rooms)

    async def emit(
        self,
        rooms: Iterable[str],
        event: str,
        data: dict,
        exclude: WebSocket | None = None,
    ):
        """
        Send one event to every socket in any of ``rooms``.

        A socket that sits in several of the target rooms receives the event
        once.
        """
        async with self._lock:
            targets: set[WebSocket] = set()
            for room in rooms:
                targets.update(self._rooms.get(room, set()))
        targets.discard(exclude)

        if not targets:
            return

        payload = json.dumps({"event": event, "data": data}, default=str)
        closed = []

        for ws in targets:
            try:
                await ws.send_text(payload)
            except Exception:
                # Connection closed or errored
                closed.append(ws)

        for ws in closed:
            logger.debug("Dropping closed websocket after failed send")
            await self.disconnect(ws)

    def rooms_for(self, websocket: WebSocket) -> set[str]:
        return set(self._memberships.get(websocket, set()))

    def get_total_connections(self) -> int:
        return len(self._memberships)


# Singleton instance
manager = ConnectionManager()
