# routes/network_info.py
from fastapi import APIRouter, Request
import logging
from models.schemas import ClientIPResponse, IceServersResponse
from network import get_client_ip

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/get-ip", response_model=ClientIPResponse)
async def get_ip(request: Request):
    """
    Return the caller's address as the signaling server sees it
    """
    ip = get_client_ip(request.headers, request.client.host if request.client else None)
    logger.debug(f"Resolved client IP: {ip}")
    return ClientIPResponse(ip=ip)

@router.get("/ice-servers", response_model=IceServersResponse, response_model_exclude_none=True)
async def get_ice_servers(request: Request):
    """
    STUN (and optionally TURN) servers for RTCPeerConnection
    """
    settings = request.app.state.settings
    return IceServersResponse(iceServers=settings.get_ice_servers())
