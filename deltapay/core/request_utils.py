"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """Get the client IP address from a request.

    X-Real-IP is only honoured when the direct peer is a local reverse proxy.
    X-Forwarded-For is never trusted because clients can set it freely.

    Returns:
        Client IP address, or "unknown" when the transport does not expose one
    """
    if request.client and request.client.host in ("127.0.0.1", "::1", "localhost"):
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            else:
                logger.warning(f"Invalid X-Real-IP: {real_ip}")

    if request.client:
        return request.client.host

    return UNKNOWN_IP


def get_user_agent(request: Request) -> str | None:
    """Return the User-Agent header, truncated for storage."""
    user_agent = request.headers.get("User-Agent")
    if user_agent:
        return user_agent[:512]
    return None
