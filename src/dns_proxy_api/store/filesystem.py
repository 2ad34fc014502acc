from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from ..errors import InternalFailureError, UnknownResourceError
from ..logs import log_json


class FilesystemCertStore:
    """
    Certificate files laid out as ``<root>/<domain>/<file>``.

    ``domain`` and ``file_name`` must already have passed parse_cert_path;
    this class does no traversal checks of its own. Symlinks are followed
    since certbot's ``live/`` entries point into ``archive/``.
    """

    def __init__(self, root: Path, *, read_timeout_s: float = 3.0) -> None:
        self._root = Path(root)
        self._read_timeout_s = float(read_timeout_s)

    def path_for(self, domain: str, file_name: str) -> Path:
        return self._root / domain / file_name

    async def read(self, domain: str, file_name: str) -> bytes:
        path = self.path_for(domain, file_name)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(path.read_bytes), timeout=self._read_timeout_s
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise UnknownResourceError(f"no such file: {path}") from exc
        except asyncio.TimeoutError as exc:
            log_json(
                logging.ERROR,
                "cert.read_failed",
                path=str(path),
                error=f"timed out after {self._read_timeout_s}s",
            )
            raise InternalFailureError(f"read of {path} timed out") from exc
        except OSError as exc:
            log_json(logging.ERROR, "cert.read_failed", path=str(path), error=str(exc))
            raise InternalFailureError(f"cannot read {path}") from exc
