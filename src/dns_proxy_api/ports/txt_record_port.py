from __future__ import annotations

from typing import Protocol


class TxtRecordError(Exception):
    pass


class TxtRecordWriter(Protocol):
    async def create_txt_record(self, domain: str, key: str, value: str) -> None:
        ...
