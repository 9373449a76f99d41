"""Resolve the address of the client behind any forwarding proxies."""
from __future__ import annotations

import ipaddress
from typing import Optional

from starlette.requests import Request

FALLBACK_CLIENT_KEY = "unknown"


def _parse(address: str) -> Optional[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    try:
        return ipaddress.ip_address(address.strip())
    except ValueError:
        return None


def _is_public(address: str) -> bool:
    ip = _parse(address)
    return ip is not None and not (ip.is_private or ip.is_loopback or ip.is_link_local)


def client_ip(request: Request) -> str:
    """Return the client's IP address, or ``FALLBACK_CLIENT_KEY`` if unknown.

    ``X-Forwarded-For`` is scanned for the first public address, then
    ``X-Real-IP`` is used. Without either header the socket peer is used.
    """

    real_ip = request.headers.get("x-real-ip", "").strip()
    forwarded_for = request.headers.get("x-forwarded-for", "")

    if not real_ip and not forwarded_for:
        candidate = request.client.host if request.client else ""
    else:
        candidate = next(
            (addr.strip() for addr in forwarded_for.split(",") if _is_public(addr)),
            real_ip,
        )

    ip = _parse(candidate) if candidate else None
    return str(ip) if ip is not None else FALLBACK_CLIENT_KEY
