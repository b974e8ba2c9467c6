# network.py

import ipaddress
import logging
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_IP = "127.0.0.1"

PRIVATE_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
]


def get_client_ip(headers: Mapping[str, str], peer_host: Optional[str] = None) -> str:
    """Resolve the client address, preferring proxy headers over the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif headers.get("x-real-ip"):
        ip = headers["x-real-ip"].strip()
    elif peer_host:
        ip = peer_host
    else:
        ip = DEFAULT_CLIENT_IP

    # IPv4-mapped IPv6 addresses
    if "::ffff:" in ip:
        ip = ip.replace("::ffff:", "")
    return ip


def is_local_ip(ip: Optional[str]) -> bool:
    """True for loopback and RFC 1918 IPv4 addresses."""
    if not ip:
        return False
    if ip == "localhost":
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    if address.version != 4:
        return False
    return address.is_loopback or any(address in net for net in PRIVATE_NETWORKS)


def local_subnet_prefix(ip: Optional[str]) -> Optional[str]:
    """First three octets of a local address, e.g. ``192.168.1.``."""
    if not is_local_ip(ip) or "." not in ip:
        return None
    return ip[:ip.rindex(".") + 1]


def on_same_local_network(ip1: Optional[str], ip2: Optional[str]) -> bool:
    prefix = local_subnet_prefix(ip1)
    return prefix is not None and prefix == local_subnet_prefix(ip2)


def join_allowed(host_ip: Optional[str], viewer_ip: Optional[str]) -> bool:
    """
    Decide whether a viewer may join a host's room.

    Only local-to-local joins across different /24 prefixes are refused;
    anyone on a public (or unknown) address may join freely.
    """
    if is_local_ip(host_ip) and is_local_ip(viewer_ip):
        return on_same_local_network(host_ip, viewer_ip)
    return True
