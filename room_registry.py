from typing import Dict, List, Optional
import logging

from models.schemas import Departure, Room

logger = logging.getLogger(__name__)


class RoomRegistryError(Exception):
    """Base class for registry failures surfaced to a single connection."""


class RoomNotFoundError(RoomRegistryError):
    def __init__(self, room_id: str):
        super().__init__(f"Room '{room_id}' not found")
        self.room_id = room_id


class RoomExistsError(RoomRegistryError):
    def __init__(self, room_id: str):
        super().__init__(f"Room '{room_id}' already exists")
        self.room_id = room_id


class AlreadyInRoomError(RoomRegistryError):
    def __init__(self, conn_id: str, room_id: str):
        super().__init__(f"Connection {conn_id} is already a member of room '{room_id}'")
        self.conn_id = conn_id
        self.room_id = room_id


class RoomRegistry:
    """
    In-memory table of rooms keyed by room id.

    Alongside the rooms it keeps a reverse index from connection id to the
    room that connection hosts or views, updated together with membership so
    a connection can be resolved to its room without scanning.

    The registry performs no locking; callers serialize access.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._membership: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def create_room(self, room_id: str, host: str, host_address: Optional[str] = None,
                    overwrite: bool = True) -> Optional[Room]:
        """
        Register a new room hosted by ``host``.

        Last writer wins unless ``overwrite`` is False. Returns the room that
        was displaced when the id was already live, otherwise None.
        """
        current = self._membership.get(host)
        if current is not None and not (overwrite and current == room_id):
            raise AlreadyInRoomError(host, current)

        displaced = None
        if room_id in self._rooms:
            if not overwrite:
                raise RoomExistsError(room_id)
            displaced = self._drop_room(room_id)
            logger.warning(f"Room {room_id} overwritten, previous host {displaced.host}")

        self._rooms[room_id] = Room(roomID=room_id, host=host, hostAddress=host_address)
        self._membership[host] = room_id
        return displaced

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def add_viewer(self, room_id: str, viewer: str) -> Room:
        """Add ``viewer`` to the room; adding an existing viewer again is a no-op."""
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)

        current = self._membership.get(viewer)
        if current is not None and current != room_id:
            raise AlreadyInRoomError(viewer, current)
        if viewer == room.host:
            raise AlreadyInRoomError(viewer, room_id)

        room.viewers.add(viewer)
        self._membership[viewer] = room_id
        return room

    def remove_connection(self, conn_id: str) -> Optional[Departure]:
        """
        Forget everything the registry knows about ``conn_id``.

        A host takes its room with it; a viewer is only removed from the
        viewer set. Returns None when the connection was not a member, which
        makes a repeated call for the same connection harmless.
        """
        room_id = self._membership.pop(conn_id, None)
        if room_id is None:
            return None

        room = self._rooms.get(room_id)
        if room is None:
            return None

        if room.host == conn_id:
            self._drop_room(room_id)
            return Departure(roomID=room_id, role="host", room=room)

        room.viewers.discard(conn_id)
        return Departure(roomID=room_id, role="viewer", room=room)

    def set_sharing(self, room_id: str, value: bool) -> Optional[Room]:
        room = self._rooms.get(room_id)
        if room is not None:
            room.isSharing = value
        return room

    def room_of(self, conn_id: str) -> Optional[Room]:
        room_id = self._membership.get(conn_id)
        if room_id is None:
            return None
        return self._rooms.get(room_id)

    def host_for_viewer(self, conn_id: str) -> Optional[str]:
        """Host connection of the room ``conn_id`` is viewing, if any."""
        room = self.room_of(conn_id)
        if room is None or conn_id not in room.viewers:
            return None
        return room.host

    def clear(self):
        self._rooms.clear()
        self._membership.clear()

    def _drop_room(self, room_id: str) -> Room:
        room = self._rooms.pop(room_id)
        for member in [room.host, *room.viewers]:
            if self._membership.get(member) == room_id:
                del self._membership[member]
        return room
