from __future__ import annotations

from pathlib import Path
from typing import Protocol


class CertStore(Protocol):
    def path_for(self, domain: str, file_name: str) -> Path:
        ...

    async def read(self, domain: str, file_name: str) -> bytes:
        ...
