from __future__ import annotations

from typing import Iterable, Iterator

__all__ = ["Allowlist", "normalize_hostname"]


def normalize_hostname(name: str) -> str:
    """Lower-case a hostname and drop a single trailing root-zone dot."""
    name = name.lower()
    if name.endswith("."):
        name = name[:-1]
    return name


class Allowlist:
    """Immutable, case-insensitive set of hostnames allowed to pull certificates."""

    __slots__ = ("_names",)

    def __init__(self, names: Iterable[str] = ()) -> None:
        normalized = (normalize_hostname(name) for name in names)
        self._names = frozenset(name for name in normalized if name)

    @classmethod
    def from_csv(cls, raw: str) -> "Allowlist":
        """Parse a comma-separated config value; entries are trimmed, blanks dropped."""
        return cls(item.strip() for item in raw.split(",") if item.strip())

    def __contains__(self, hostname: object) -> bool:
        if not isinstance(hostname, str):
            return False
        return normalize_hostname(hostname) in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Allowlist):
            return NotImplemented
        return self._names == other._names

    def __hash__(self) -> int:
        return hash(self._names)

    def __repr__(self) -> str:
        return f"Allowlist({sorted(self._names)!r})"
