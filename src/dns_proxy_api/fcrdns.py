"""
Forward-Confirmed Reverse DNS verification.

client address -> PTR names -> allowlist match -> A/AAAA of that name ->
the original address must reappear. A PTR record alone proves nothing, since
whoever owns the reverse zone of an IP range can point it anywhere; the
forward zone of an allowlisted name is under the operator's control.
"""
from __future__ import annotations

import asyncio
import ipaddress
import logging
from typing import Awaitable, TypeVar

from .allowlist import Allowlist, normalize_hostname
from .logs import log_json
from .ports.resolver_port import ResolverPort

__all__ = ["is_authorized", "parse_ip"]

_T = TypeVar("_T")

# The resolver applies timeout_s per query; this outer bound only backs it up.
_OUTER_GRACE_S = 0.5

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


async def _lookup(call: Awaitable[_T], direction: str, name: str, timeout_s: float) -> _T | None:
    """Run one bounded lookup; any failure is logged and yields None."""
    try:
        return await asyncio.wait_for(call, timeout=timeout_s + _OUTER_GRACE_S)
    except asyncio.TimeoutError:
        error = f"timed out after {timeout_s}s"
    except Exception as exc:
        error = str(exc) or type(exc).__name__
    log_json(logging.WARNING, "fcrdns.lookup_failed", direction=direction, name=name, error=error)
    return None


def parse_ip(value: str) -> IPAddress | None:
    """Parse an IP literal, folding IPv4-mapped IPv6 to plain IPv4."""
    try:
        ip = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


async def is_authorized(
    client_address: str,
    allowlist: Allowlist,
    resolver: ResolverPort,
    *,
    timeout_s: float,
) -> bool:
    if len(allowlist) == 0:
        return False
    client_ip = parse_ip(client_address)
    if client_ip is None:
        return False

    ptr_names = await _lookup(resolver.reverse(str(client_ip)), "reverse", str(client_ip), timeout_s)
    if not ptr_names:
        return False

    checked: set[str] = set()
    for ptr in ptr_names:
        hostname = normalize_hostname(ptr)
        if hostname in checked or hostname not in allowlist:
            continue
        checked.add(hostname)
        addresses = await _lookup(resolver.forward(hostname), "forward", hostname, timeout_s)
        if addresses is None:
            continue
        if any(parse_ip(address) == client_ip for address in addresses):
            return True
    return False
