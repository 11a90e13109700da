"""
IP Address Utilities

Extracts the client address for log records, trusting X-Real-IP only when
the direct peer is a local reverse proxy.
"""

import ipaddress
from typing import List, Union
from starlette.requests import HTTPConnection

TRUSTED_PROXIES: List[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]] = [
    ipaddress.ip_address("127.0.0.1"),
    ipaddress.ip_address("::1"),
]


def is_trusted_proxy(client_ip: str) -> bool:
    try:
        return ipaddress.ip_address(client_ip) in TRUSTED_PROXIES
    except ValueError:
        return False


def get_client_ip(connection: HTTPConnection) -> str:
    """
    Get the client IP for a request or connection.

    X-Real-IP is honoured only when the direct peer is a trusted proxy, so
    external clients cannot spoof the logged address.
    """
    direct_ip = connection.client.host if connection.client else "unknown"

    if is_trusted_proxy(direct_ip):
        real_ip = connection.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    return direct_ip
