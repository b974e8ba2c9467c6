from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from typing import Any, Dict, Optional
import asyncio
import json
import logging
import secrets

from connection_manager import ConnectionManager
from room_registry import (
    AlreadyInRoomError, RoomExistsError, RoomNotFoundError, RoomRegistry,
)
from models.events import (
    ALREADY_IN_ROOM, HOST_CANNOT_VIEW, HOST_ROLE_TOKEN, LOCAL_NETWORK_ONLY,
    ROOM_EXISTS, ROOM_NOT_FOUND, InboundEvents, OutboundEvents,
)
from models.schemas import (
    AnswerPayload, IceCandidatePayload, OfferPayload, Room, RoomPayload, SignalMessage,
)
from network import get_client_ip, join_allowed

logger = logging.getLogger(__name__)


class SignalingRouter:
    """
    Handles every inbound event of a connection.

    Registry and address-map mutations run under a single lock; events are
    emitted once the lock is released.
    """

    def __init__(self, registry: RoomRegistry, connections: ConnectionManager,
                 local_network_policy: bool = True, allow_room_overwrite: bool = True):
        self.registry = registry
        self.connections = connections
        self.local_network_policy = local_network_policy
        self.allow_room_overwrite = allow_room_overwrite
        self.client_ips: Dict[str, str] = {}
        self.lock = asyncio.Lock()
        self._handlers = {
            InboundEvents.CREATE_ROOM: self.create_room,
            InboundEvents.JOIN_ROOM: self.join_room,
            InboundEvents.VIEWER_JOINED: self.viewer_joined,
            InboundEvents.START_SCREEN_SHARE: self.start_screen_share,
            InboundEvents.STOP_SCREEN_SHARE: self.stop_screen_share,
            InboundEvents.OFFER: self.relay_offer,
            InboundEvents.ANSWER: self.relay_answer,
            InboundEvents.ICE_CANDIDATE: self.relay_ice_candidate,
            InboundEvents.REGISTER_IP: self.register_ip,
        }

    async def dispatch(self, conn_id: str, event: str, data: Any):
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event {event!r} from {conn_id}")
            return
        try:
            await handler(conn_id, data)
        except (ValidationError, ValueError) as e:
            logger.error(f"Invalid {event} payload from {conn_id}: {e}")
            await self._emit_error(conn_id, f"Invalid payload for {event}")

    # Connection lifecycle

    async def handle_connect(self, conn_id: str, client_ip: str):
        async with self.lock:
            self.client_ips[conn_id] = client_ip
        logger.info(f"User connected: {conn_id}, IP: {client_ip}")
        await self.connections.send_to(conn_id, OutboundEvents.CONNECTED, {"connID": conn_id})

    async def register_ip(self, conn_id: str, data: Any):
        ip = data.get("ip") if isinstance(data, dict) else data
        if not isinstance(ip, str) or not ip.strip():
            raise ValueError("ip must be a non-empty string")
        async with self.lock:
            self.client_ips[conn_id] = ip.strip()
            room = self.registry.room_of(conn_id)
            if room is not None and room.host == conn_id:
                room.hostAddress = ip.strip()
        logger.info(f"Registering IP for {conn_id}: {ip.strip()}")

    async def handle_disconnect(self, conn_id: str):
        async with self.lock:
            client_ip = self.client_ips.pop(conn_id, None)
            departure = self.registry.remove_connection(conn_id)

        logger.info(f"User disconnected: {conn_id}, IP: {client_ip or 'unknown'}")
        if departure is None:
            return

        room = departure.room
        if departure.role == "host":
            await self.connections.broadcast(departure.roomID, OutboundEvents.HOST_DISCONNECTED)
            self.connections.close_group(departure.roomID)
            logger.info(f"Host disconnected, room deleted: {departure.roomID}")
        else:
            self.connections.leave_group(departure.roomID, conn_id)
            await self.connections.send_to(room.host, OutboundEvents.VIEWER_LEFT, conn_id)
            logger.info(f"Viewer left room: {departure.roomID}. Notified host: {room.host}")
            self._log_room_state(room)

    # Room lifecycle

    async def create_room(self, conn_id: str, data: Any):
        room_id = _room_id(data)
        async with self.lock:
            try:
                displaced = self.registry.create_room(
                    room_id, conn_id, self.client_ips.get(conn_id),
                    overwrite=self.allow_room_overwrite,
                )
            except RoomExistsError:
                error = ROOM_EXISTS
            except AlreadyInRoomError:
                error = ALREADY_IN_ROOM
            else:
                error = None
            room = self.registry.get_room(room_id)

        if error is not None:
            logger.warning(f"Rejected createRoom {room_id} from {conn_id}: {error}")
            await self._emit_error(conn_id, error)
            return

        if displaced is not None:
            await self.connections.broadcast(room_id, OutboundEvents.HOST_DISCONNECTED, exclude=conn_id)
            self.connections.close_group(room_id)

        self.connections.join_group(room_id, conn_id)
        await self.connections.send_to(conn_id, OutboundEvents.ROOM_CREATED, room_id)
        logger.info(f"Room created: {room_id} by host: {conn_id}, IP: {room.hostAddress}")
        self._log_room_state(room)

    async def join_room(self, conn_id: str, data: Any):
        room_id = _room_id(data)
        async with self.lock:
            error = None
            room = self.registry.get_room(room_id)
            if room is None:
                error = ROOM_NOT_FOUND
            elif not self._may_join(room, conn_id):
                error = LOCAL_NETWORK_ONLY
            else:
                try:
                    self.registry.add_viewer(room_id, conn_id)
                except RoomNotFoundError:
                    error = ROOM_NOT_FOUND
                except AlreadyInRoomError:
                    error = HOST_CANNOT_VIEW if conn_id == room.host else ALREADY_IN_ROOM
            is_sharing = room.isSharing if room is not None else False

        if error is not None:
            logger.info(f"Rejected joinRoom {room_id} from {conn_id}: {error}")
            await self._emit_error(conn_id, error)
            return

        self.connections.join_group(room_id, conn_id)
        await self.connections.send_to(conn_id, OutboundEvents.ROOM_JOINED, room_id)
        logger.info(f"User {conn_id} joined room: {room_id}")
        self._log_room_state(room)

        # Late joiners learn about an in-progress share without polling
        if is_sharing:
            await self.connections.send_to(conn_id, OutboundEvents.HOST_IS_SHARING, {"roomID": room_id})
            logger.info(f"Notified viewer {conn_id} that host is already sharing")

    async def viewer_joined(self, conn_id: str, data: Any):
        room_id = RoomPayload.model_validate(data).roomID
        room = self.registry.get_room(room_id)
        if room is None or not room.host:
            logger.info(f"viewerJoined event for non-existent room: {room_id}")
            return
        await self.connections.send_to(room.host, OutboundEvents.NEW_VIEWER, conn_id)
        logger.info(f"Notified host {room.host} of new viewer {conn_id}")

    async def start_screen_share(self, conn_id: str, data: Any):
        room_id = RoomPayload.model_validate(data).roomID
        async with self.lock:
            room = self.registry.set_sharing(room_id, True)
        if room is not None:
            logger.info(f"Host started screen sharing in room {room_id}")
            self._log_room_state(room)

    async def stop_screen_share(self, conn_id: str, data: Any):
        room_id = RoomPayload.model_validate(data).roomID
        async with self.lock:
            room = self.registry.set_sharing(room_id, False)
        if room is None:
            return
        await self.connections.broadcast(room_id, OutboundEvents.HOST_STOPPED_SHARING)
        logger.info(f"Host stopped screen sharing in room {room_id}")
        self._log_room_state(room)

    # Negotiation relay

    async def relay_offer(self, conn_id: str, data: Any):
        payload = OfferPayload.model_validate(data)
        sender = payload.from_ or conn_id
        logger.info(f"Forwarding offer from {sender} to {payload.to}")
        await self.connections.send_to(payload.to, OutboundEvents.OFFER,
                                       {"from": sender, "offer": payload.offer})

    async def relay_answer(self, conn_id: str, data: Any):
        payload = AnswerPayload.model_validate(data)
        sender = payload.from_ or conn_id
        logger.info(f"Forwarding answer from {sender} to {payload.to}")
        await self.connections.send_to(payload.to, OutboundEvents.ANSWER,
                                       {"from": sender, "answer": payload.answer})

    async def relay_ice_candidate(self, conn_id: str, data: Any):
        payload = IceCandidatePayload.model_validate(data)
        sender = payload.from_ or conn_id
        target = payload.to
        if target == HOST_ROLE_TOKEN:
            async with self.lock:
                target = self.registry.host_for_viewer(sender)
            if target is None:
                logger.warning(f"Could not find host for viewer {sender}")
                return

        await self.connections.send_to(target, OutboundEvents.ICE_CANDIDATE,
                                       {"from": sender, "candidate": payload.candidate})
        logger.debug(f"Forwarded ICE candidate from {sender} to {target}")

    # Helpers

    def _may_join(self, room: Room, conn_id: str) -> bool:
        if not self.local_network_policy:
            return True
        host_ip = self.client_ips.get(room.host) or room.hostAddress
        viewer_ip = self.client_ips.get(conn_id)
        allowed = join_allowed(host_ip, viewer_ip)
        if not allowed:
            logger.info(f"Network restriction: {conn_id} ({viewer_ip}) cannot join room "
                        f"hosted by {room.host} ({host_ip})")
        return allowed

    async def _emit_error(self, conn_id: str, message: str):
        await self.connections.send_to(conn_id, OutboundEvents.ERROR, message)

    def _log_room_state(self, room: Optional[Room]):
        if room is None:
            return
        viewers = ", ".join(sorted(room.viewers)) or "none"
        logger.debug(f"Room state for {room.roomID}: host={room.host} "
                     f"(IP: {room.hostAddress or 'unknown'}), viewers={viewers}, "
                     f"sharing={room.isSharing}")


def _room_id(data: Any) -> str:
    """createRoom/joinRoom carry a bare room id; an object form is accepted too."""
    if isinstance(data, str) and data:
        return data
    return RoomPayload.model_validate(data).roomID


def new_connection_id() -> str:
    return secrets.token_urlsafe(12)


async def signaling_endpoint(websocket: WebSocket):
    router: SignalingRouter = websocket.app.state.signaling_router
    connections: ConnectionManager = router.connections

    await websocket.accept()
    conn_id = new_connection_id()
    client_ip = get_client_ip(websocket.headers, websocket.client.host if websocket.client else None)
    connections.connect(conn_id, websocket)
    await router.handle_connect(conn_id, client_ip)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = SignalMessage.model_validate(json.loads(data))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Malformed message from {conn_id}: {e}")
                await connections.send_to(conn_id, OutboundEvents.ERROR, "Invalid message")
                continue
            await router.dispatch(conn_id, message.event, message.data)
    except WebSocketDisconnect:
        pass
    finally:
        await router.handle_disconnect(conn_id)
        connections.disconnect(conn_id)
