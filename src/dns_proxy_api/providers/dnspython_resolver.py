from __future__ import annotations

import asyncio
from typing import Any

import dns.asyncresolver
import dns.exception

from ..ports.resolver_port import DnsLookupError

_FORWARD_TYPES = ("A", "AAAA")


class DnsPythonResolver:
    """ResolverPort backed by dnspython's asyncio resolver."""

    def __init__(self, *, timeout_s: float, resolver: Any | None = None) -> None:
        self._lifetime = float(timeout_s)
        if resolver is None:
            resolver = dns.asyncresolver.Resolver(configure=True)
            resolver.lifetime = self._lifetime
        self._resolver = resolver

    async def reverse(self, address: str) -> list[str]:
        try:
            answer = await self._resolver.resolve_address(address, lifetime=self._lifetime)
        except dns.exception.DNSException as exc:
            raise DnsLookupError("reverse", address, _describe(exc)) from exc
        return [rdata.target.to_text() for rdata in answer]

    async def forward(self, hostname: str) -> list[str]:
        # A and AAAA run concurrently so a stalled A server can't starve AAAA.
        results = await asyncio.gather(
            *(
                self._resolver.resolve(hostname, rdtype, lifetime=self._lifetime)
                for rdtype in _FORWARD_TYPES
            ),
            return_exceptions=True,
        )
        addresses: list[str] = []
        failures: list[str] = []
        for rdtype, result in zip(_FORWARD_TYPES, results):
            if isinstance(result, dns.exception.DNSException):
                # NXDOMAIN/NoAnswer for one type is fine if the other answers.
                failures.append(f"{rdtype}: {_describe(result)}")
                continue
            if isinstance(result, BaseException):
                raise result
            addresses.extend(rdata.address for rdata in result)
        if not addresses:
            raise DnsLookupError("forward", hostname, "; ".join(failures) or "no addresses")
        return addresses


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"
