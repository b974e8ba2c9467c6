import os
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_STUN_URLS = [
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
    "stun:stun2.l.google.com:19302",
    "stun:stun3.l.google.com:19302",
    "stun:stun4.l.google.com:19302",
]

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",  # Vite dev server
]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

def _split_list(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]

def _parse_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise RuntimeError(f"Invalid boolean for {name}: {raw!r}")

def validate_environment():
    """Validate optional settings that must be configured together"""
    turn_vars = ["TURN_URL", "TURN_USERNAME", "TURN_CREDENTIAL"]
    present = [var for var in turn_vars if os.getenv(var)]
    if present and len(present) != len(turn_vars):
        missing = [var for var in turn_vars if var not in present]
        raise RuntimeError(f"Incomplete TURN configuration, missing: {', '.join(missing)}")

    for name in ("LOCAL_NETWORK_POLICY", "ALLOW_ROOM_OVERWRITE"):
        _parse_bool(name, False)

def get_allowed_origins() -> List[str]:
    """Allowed CORS origins from ALLOWED_ORIGINS, falling back to local dev servers"""
    return _split_list(os.getenv("ALLOWED_ORIGINS")) or list(DEFAULT_ALLOWED_ORIGINS)

class ServerSettings:
    """Settings read from the environment once at startup."""

    def __init__(self):
        self.environment = os.getenv("APP_ENVIRONMENT", "development")

        # Signaling behaviour
        self.local_network_policy = _parse_bool("LOCAL_NETWORK_POLICY", True)
        self.allow_room_overwrite = _parse_bool("ALLOW_ROOM_OVERWRITE", True)

        # ICE servers handed to browsers
        self.stun_urls = _split_list(os.getenv("STUN_URLS")) or list(DEFAULT_STUN_URLS)
        self.turn_url = os.getenv("TURN_URL")
        self.turn_username = os.getenv("TURN_USERNAME")
        self.turn_credential = os.getenv("TURN_CREDENTIAL")

    def get_ice_servers(self):
        """ICE server entries in RTCConfiguration shape"""
        servers = [{"urls": url} for url in self.stun_urls]
        if self.turn_url:
            servers.append({
                "urls": self.turn_url,
                "username": self.turn_username,
                "credential": self.turn_credential,
            })
        return servers
