"""Client address helpers shared by access recording and rate limiting."""

import ipaddress
from typing import Mapping, Optional

LOOPBACK_PLACEHOLDER = "127.0.0.1"

# Consulted in order; the first present wins
CLIENT_IP_HEADERS = ("cf-connecting-ip", "x-forwarded-for", "x-real-ip")


def extract_client_ip(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """
    Derive the client IP from proxy headers.

    Args:
        headers: Request headers, looked up by lower-case name
        peer: Socket peer address, used when no proxy header is present

    Returns:
        str: Best-known client IP, or the loopback placeholder
    """
    for header in CLIENT_IP_HEADERS:
        value = headers.get(header)
        if value:
            # X-Forwarded-For is "client, proxy1, proxy2"
            candidate = value.split(",")[0].strip()
            if candidate:
                return candidate
    return peer or LOOPBACK_PLACEHOLDER


def is_private_ip(ip: Optional[str]) -> bool:
    """True for private, loopback, link-local and unparseable addresses."""
    if not ip:
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return address.is_private or address.is_loopback or address.is_link_local or address.is_unspecified
