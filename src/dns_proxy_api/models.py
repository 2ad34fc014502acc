from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

PEM_CONTENT_TYPE = "application/x-pem-file"


@dataclass(frozen=True)
class CertRequest:
    authorization: str | None
    peer_host: str | None
    cert_path: str


@dataclass(frozen=True)
class ServedCert:
    path: Path
    client_address: str
    data: bytes
    content_type: str = PEM_CONTENT_TYPE
