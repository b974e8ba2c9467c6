# models/schemas.py
from pydantic import AliasChoices, BaseModel, Field
from typing import Any, Optional, List, Set

# Registry models
class Room(BaseModel):
    roomID: str
    host: str
    viewers: Set[str] = Field(default_factory=set)
    isSharing: bool = False
    hostAddress: Optional[str] = None

class Departure(BaseModel):
    roomID: str
    role: str  # "host" or "viewer"
    room: Room

# Transport envelope
class SignalMessage(BaseModel):
    event: str
    data: Any = None

# Inbound payloads
class RoomPayload(BaseModel):
    roomID: str = Field(validation_alias=AliasChoices("roomID", "roomId"))

class RelayPayload(BaseModel):
    to: str
    from_: Optional[str] = Field(default=None, alias="from")

class OfferPayload(RelayPayload):
    offer: Any

class AnswerPayload(RelayPayload):
    answer: Any

class IceCandidatePayload(RelayPayload):
    candidate: Any

# HTTP responses
class RoomInfo(BaseModel):
    roomID: str
    host: str
    viewers: List[str]
    numViewers: int
    isSharing: bool

class IceServer(BaseModel):
    urls: str
    username: Optional[str] = None
    credential: Optional[str] = None

class IceServersResponse(BaseModel):
    iceServers: List[IceServer]

class ClientIPResponse(BaseModel):
    ip: str
