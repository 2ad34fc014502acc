from __future__ import annotations

from typing import Protocol


class DnsLookupError(Exception):
    def __init__(self, direction: str, name: str, message: str) -> None:
        super().__init__(f"{direction} lookup of {name} failed: {message}")
        self.direction = direction
        self.name = name


class ResolverPort(Protocol):
    async def reverse(self, address: str) -> list[str]:
        """
        Return the PTR targets for an IP address.

        Names may carry a trailing root-zone dot. Raises DnsLookupError when
        the lookup fails.
        """
        ...

    async def forward(self, hostname: str) -> list[str]:
        """
        Return the A and AAAA addresses of a hostname.

        Raises DnsLookupError when no address can be obtained.
        """
        ...
