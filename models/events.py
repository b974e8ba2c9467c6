# models/events.py


class InboundEvents:
    """Client -> server events."""
    CREATE_ROOM = "createRoom"
    JOIN_ROOM = "joinRoom"
    VIEWER_JOINED = "viewerJoined"
    START_SCREEN_SHARE = "startScreenShare"
    STOP_SCREEN_SHARE = "stopScreenShare"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "iceCandidate"
    REGISTER_IP = "registerIP"


class OutboundEvents:
    """Server -> client events."""
    CONNECTED = "connected"
    ROOM_CREATED = "roomCreated"
    ROOM_JOINED = "roomJoined"
    ERROR = "error"
    HOST_IS_SHARING = "hostIsSharing"
    NEW_VIEWER = "newViewer"
    HOST_STOPPED_SHARING = "hostStoppedSharing"
    HOST_DISCONNECTED = "hostDisconnected"
    VIEWER_LEFT = "viewerLeft"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "iceCandidate"


# Role token accepted in place of a connection id for ICE candidates
HOST_ROLE_TOKEN = "host"

ROOM_NOT_FOUND = "Room not found"
ROOM_EXISTS = "Room already exists"
ALREADY_IN_ROOM = "You are already in another room"
HOST_CANNOT_VIEW = "The host cannot join its own room as a viewer"
LOCAL_NETWORK_ONLY = "You can only join rooms from the same local network"
