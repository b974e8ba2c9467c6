from fastapi import APIRouter, HTTPException, Request, status
import logging
from models.schemas import RoomInfo, Room

logger = logging.getLogger(__name__)
router = APIRouter()

def _room_info(room: Room) -> RoomInfo:
    viewers = sorted(room.viewers)
    return RoomInfo(
        roomID=room.roomID,
        host=room.host,
        viewers=viewers,
        numViewers=len(viewers),
        isSharing=room.isSharing,
    )

@router.get("/rooms")
async def list_rooms(request: Request):
    """
    List all live signaling rooms
    """
    registry = request.app.state.registry
    room_list = [_room_info(room) for room in registry.rooms()]
    return {
        "rooms": room_list,
        "total": len(room_list)
    }

@router.get("/room/{room_id}", response_model=RoomInfo)
async def get_room_info(room_id: str, request: Request):
    """
    Get membership and sharing state of a specific room
    """
    room = request.app.state.registry.get_room(room_id)
    if room is None:
        logger.info(f"Room lookup for unknown room: {room_id}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Room '{room_id}' not found"
        )
    return _room_info(room)
